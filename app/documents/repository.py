# app/documents/repository.py

from app.documents.models import Document
from app.esign.repository import SignableRepository


class DocumentRepository(SignableRepository[Document]):
    """Data Access Layer for documents."""

    model = Document
    search_columns = (Document.name, Document.description)
    sortable_columns = {
        "name": Document.name,
        "status": Document.status,
        "created_on": Document.created_on,
        "updated_on": Document.updated_on,
    }
