# app/signature_terms/repository.py

from app.esign.repository import SignableRepository
from app.signature_terms.models import AutoSignatureTerm


class SignatureTermRepository(SignableRepository[AutoSignatureTerm]):
    """Data Access Layer for auto signature terms."""

    model = AutoSignatureTerm
    search_columns = (AutoSignatureTerm.signer_name, AutoSignatureTerm.signer_email)
    sortable_columns = {
        "signer_name": AutoSignatureTerm.signer_name,
        "signer_email": AutoSignatureTerm.signer_email,
        "status": AutoSignatureTerm.status,
        "created_on": AutoSignatureTerm.created_on,
        "updated_on": AutoSignatureTerm.updated_on,
    }
