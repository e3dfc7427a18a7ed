# app/signature_terms/models.py

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.esign.models import SignableMixin
from app.users.models import AuditMixin


class AutoSignatureTerm(Base, SignableMixin, AuditMixin):
    """
    Authorization for the provider to sign automatically on behalf of a signer.
    """
    __tablename__ = "auto_signature_terms"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Signer block
    signer_documentation: Mapped[str] = mapped_column(String(14), nullable=False)
    signer_birthday: Mapped[str] = mapped_column(String(10), nullable=False)
    signer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    signer_name: Mapped[str] = mapped_column(String(255), nullable=False)

    admin_email: Mapped[str] = mapped_column(String(255), nullable=False)
    api_email: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self):
        return f"<AutoSignatureTerm(id={self.id}, signer='{self.signer_email}', status='{self.status}')>"
