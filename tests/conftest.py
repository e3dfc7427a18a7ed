import os

# Settings are read at import time, so the test environment goes first
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALGORITHM"] = "HS256"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./unused-app.db"
os.environ["PROVIDER_BASE_URL"] = "http://provider.test"
os.environ["PROVIDER_API_KEY"] = "test-api-key"
os.environ["PROVIDER_WEBHOOK_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from app.core.db import Base, get_async_db
from app.core.jwt import create_access_token
from app.documents.models import Document
from app.esign.models import WebhookEvent  # noqa: F401
from app.esign.schemas import SignatureStatus
from app.esign.services import AutoSignatureTermSubmission, DocumentSubmission, get_provider_client
from app.esign.utils import RecordLocks
from app.documents.services import DocumentService
from app.main import signature_app
from app.signature_terms.models import AutoSignatureTerm
from app.signature_terms.services import SignatureTermService
from app.users.models import User

from provider_fakes import PDF_BYTES, FakeProviderClient


# ---------- database ----------

@pytest.fixture
def db_file(tmp_path):
    """A fresh SQLite file with every table created."""
    path = tmp_path / "signatures.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return path


@pytest.fixture
def sync_db(db_file):
    """Synchronous session used to seed rows and inspect results from plain tests."""
    engine = create_engine(f"sqlite:///{db_file}")
    session = Session(engine, expire_on_commit=False)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
async def session_factory(db_file):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ---------- services ----------

@pytest.fixture
def provider():
    return FakeProviderClient()


@pytest.fixture
def locks():
    return RecordLocks()


@pytest.fixture
def make_term_service(provider, locks):
    def _make(session):
        service = SignatureTermService(db=session, submission=AutoSignatureTermSubmission(provider, timeout_seconds=5))
        service.locks = locks
        return service
    return _make


@pytest.fixture
def make_document_service(provider, locks):
    def _make(session):
        service = DocumentService(db=session, submission=DocumentSubmission(provider, timeout_seconds=5))
        service.locks = locks
        return service
    return _make


@pytest.fixture
def term_service(db_session, make_term_service):
    return make_term_service(db_session)


@pytest.fixture
def document_service(db_session, make_document_service):
    return make_document_service(db_session)


# ---------- sample data ----------

@pytest.fixture
def term_payload():
    return {
        "signer_documentation": "12345678901",
        "signer_birthday": "1985-04-12",
        "signer_email": "signer@empresa.com.br",
        "signer_name": "Maria Souza",
        "admin_email": "admin@empresa.com.br",
        "api_email": "api@empresa.com.br",
    }


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "contract.pdf"
    path.write_bytes(PDF_BYTES)
    return path


@pytest.fixture
def document_payload(pdf_file):
    return {
        "name": "Service Contract",
        "file_path": str(pdf_file),
        "file_size": len(PDF_BYTES),
        "mime_type": "application/pdf",
        "description": "Annual service contract",
    }


@pytest.fixture
def seed_term(sync_db, term_payload):
    """Insert a term directly in the given state."""
    def _seed(status=SignatureStatus.DRAFT, provider_key=None, raw_payload=None):
        term = AutoSignatureTerm(
            **term_payload, status=status, provider_key=provider_key, provider_raw_payload=raw_payload,
        )
        sync_db.add(term)
        sync_db.commit()
        return term.id
    return _seed


@pytest.fixture
def seed_document(sync_db, document_payload):
    """Insert a document directly in the given state."""
    def _seed(status=SignatureStatus.DRAFT, provider_key=None, raw_payload=None):
        document = Document(
            **document_payload, status=status, provider_key=provider_key, provider_raw_payload=raw_payload,
        )
        sync_db.add(document)
        sync_db.commit()
        return document.id
    return _seed


# ---------- HTTP ----------

@pytest.fixture
def admin_user(sync_db):
    user = User(
        name="Back Office Admin",
        email_address="admin@backoffice.com",
        password="not-a-real-hash",
        is_admin=True,
        is_active=True,
    )
    sync_db.add(user)
    sync_db.commit()
    return user


@pytest.fixture
def auth_headers(admin_user):
    token = create_access_token(data={"sub": admin_user.email_address, "id": admin_user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_file, provider):
    """
    TestClient bound to the per-test SQLite file and the fake provider.
    Used without a context manager so the startup hook (which targets the
    real database) does not run.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_async_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    signature_app.dependency_overrides[get_async_db] = override_get_async_db
    signature_app.dependency_overrides[get_provider_client] = lambda: provider
    yield TestClient(signature_app)
    signature_app.dependency_overrides.clear()


@pytest.fixture
def fetch(sync_db):
    """Read a record's current state, bypassing the identity map."""
    def _fetch(model, record_id):
        sync_db.expire_all()
        return sync_db.get(model, record_id)
    return _fetch
