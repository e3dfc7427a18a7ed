# app/documents/utils.py

import os
from typing import List

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000

ALLOWED_MIME_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
)


def validate_document(document) -> List[str]:
    """
    Check the field rules of a document.

    Returns:
        List of error messages, empty when the document is valid
    """
    errors = []

    name = (document.name or "").strip()
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        errors.append(f"name must have between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters")

    if not document.file_path:
        errors.append("file_path is required")
    elif not os.path.isfile(document.file_path):
        errors.append(f"file does not exist: {document.file_path}")

    if document.file_size is None or document.file_size <= 0:
        errors.append("file_size must be greater than zero")

    if (document.mime_type or "").lower() not in ALLOWED_MIME_TYPES:
        errors.append(f"invalid mime type: {document.mime_type}. Allowed types: {', '.join(ALLOWED_MIME_TYPES)}")

    if document.description and len(document.description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"description must have at most {MAX_DESCRIPTION_LENGTH} characters")

    return errors
