# app/documents/schemas.py

"""
Pydantic schemas for the documents module
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.esign.schemas import SignatureStatus


class DocumentBase(BaseModel):
    """Base schema for a document."""
    name: str = Field(..., max_length=255)
    file_path: str = Field(..., max_length=1024)
    file_size: int
    mime_type: str = Field(..., max_length=100)
    description: Optional[str] = None


class DocumentCreate(DocumentBase):
    """Schema for creating a document. New documents start in draft."""


class DocumentUpdate(BaseModel):
    """Schema for updating a document. Only provided fields change."""
    name: Optional[str] = Field(None, max_length=255)
    file_path: Optional[str] = Field(None, max_length=1024)
    file_size: Optional[int] = None
    mime_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class DocumentResponse(DocumentBase):
    """Schema for document response. The raw provider payload is not exposed."""
    id: int
    status: SignatureStatus
    provider_key: Optional[str] = None
    created_by: Optional[int] = None
    created_on: Optional[datetime] = None
    updated_on: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
