# app/signature_terms/utils.py

import re
from datetime import datetime
from typing import List

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_DOCUMENTATION_LENGTH = 11  # CPF
MAX_DOCUMENTATION_LENGTH = 14  # CNPJ
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 255


def is_valid_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


def is_valid_birthday(value: str) -> bool:
    try:
        datetime.strptime(value or "", "%Y-%m-%d")
    except ValueError:
        return False
    return True


def validate_signature_term(term) -> List[str]:
    """
    Check the field rules of an auto signature term.

    Returns:
        List of error messages, empty when the term is valid
    """
    errors = []

    for field in ("signer_email", "admin_email", "api_email"):
        if not is_valid_email(getattr(term, field)):
            errors.append(f"invalid {field.replace('_', ' ')} format: {getattr(term, field)}")

    documentation = term.signer_documentation or ""
    if len(documentation) < MIN_DOCUMENTATION_LENGTH:
        errors.append(f"documentation must have at least {MIN_DOCUMENTATION_LENGTH} characters")
    elif len(documentation) > MAX_DOCUMENTATION_LENGTH:
        errors.append(f"documentation must have at most {MAX_DOCUMENTATION_LENGTH} characters")

    if not is_valid_birthday(term.signer_birthday):
        errors.append(f"invalid birthday format, expected YYYY-MM-DD: {term.signer_birthday}")

    name = (term.signer_name or "").strip()
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        errors.append(f"signer name must have between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters")

    return errors
