# app/signature_terms/schemas.py

"""
Pydantic schemas for the auto signature terms module
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.esign.schemas import SignatureStatus


class SignatureTermBase(BaseModel):
    """Base schema for an auto signature term."""
    signer_documentation: str = Field(..., max_length=14)
    signer_birthday: str = Field(..., max_length=10, description="YYYY-MM-DD")
    signer_email: str = Field(..., max_length=255)
    signer_name: str = Field(..., max_length=255)
    admin_email: str = Field(..., max_length=255)
    api_email: str = Field(..., max_length=255)


class SignatureTermCreate(SignatureTermBase):
    """Schema for creating a term. New terms start in draft."""


class SignatureTermUpdate(BaseModel):
    """Schema for updating a term. Only provided fields change."""
    signer_documentation: Optional[str] = Field(None, max_length=14)
    signer_birthday: Optional[str] = Field(None, max_length=10)
    signer_email: Optional[str] = Field(None, max_length=255)
    signer_name: Optional[str] = Field(None, max_length=255)
    admin_email: Optional[str] = Field(None, max_length=255)
    api_email: Optional[str] = Field(None, max_length=255)


class SignatureTermResponse(SignatureTermBase):
    """Schema for term response. The raw provider payload is not exposed."""
    id: int
    status: SignatureStatus
    provider_key: Optional[str] = None
    created_by: Optional[int] = None
    created_on: Optional[datetime] = None
    updated_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
