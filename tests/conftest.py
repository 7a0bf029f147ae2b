"""Pytest configuration and shared fixtures."""

import os

# Must be set before config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VECTOR_STORE_TYPE", "sql")
os.environ.setdefault("EMBEDDING_DIMENSION", "16")
os.environ.setdefault("EMBEDDING_DELAY_SECONDS", "0")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import ChunkingConfig, GenerationConfig, IngestionConfig, RetrievalConfig, ValidationConfig
from core.domain import Proposal, SourceDocument, User
from core.enums import PermissionLevel
from database.session import Base
from infrastructure.chunker import WordWindowChunker
from infrastructure.document_locks import DocumentLockRegistry
from infrastructure.repositories import (
    SQLActivityLogRepository, SQLAssignmentRepository, SQLCommentRepository,
    SQLDocumentRepository, SQLProposalRepository, SQLUserRepository
)
from infrastructure.vector_stores import SQLChunkStore
from services.collaboration_service import CollaborationService
from services.drafter import GroundedDrafter
from services.ingestion_service import IngestionService
from services.permission_service import PermissionAuthority
from services.proposal_engine import ProposalEngine
from services.retriever import Retriever
from services.validator import ProposalValidator
from tests.helpers import (
    AUTHORITY, COMMENTER, DOCUMENT_ID, EDITOR, EMBEDDING_DIMENSION, OUTSIDER, OWNER, PROPOSAL_ID,
    FakeCompletionService, FakeEmbeddingService, build_document
)


# ============= Database =============

@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ============= Seed Data =============

@pytest.fixture
def document() -> SourceDocument:
    return build_document()


@pytest.fixture
async def seeded(session, document):
    """Users, one source document, one proposal and two assignments on s-tech."""
    users = SQLUserRepository(session)
    for user in (
        User(OWNER, "bidder-org", "Olivia Owner", "owner@bidder.example"),
        User(EDITOR, "partner-org", "Eddie Editor", "editor@partner.example"),
        User(COMMENTER, "partner-org", "Cora Commenter", "commenter@partner.example"),
        User(OUTSIDER, "other-org", "Oscar Outsider", "outsider@other.example"),
        User(AUTHORITY, "authority-org", "Ava Authority", "ava@city.example"),
    ):
        await users.save(user)

    await SQLDocumentRepository(session).save(document)
    await SQLProposalRepository(session).save(
        Proposal(PROPOSAL_ID, DOCUMENT_ID, "bidder-org", "Surveillance bid")
    )

    assignments = SQLAssignmentRepository(session)
    await assignments.upsert(PROPOSAL_ID, "s-tech", EDITOR, PermissionLevel.EDIT, OWNER)
    await assignments.upsert(PROPOSAL_ID, "s-tech", COMMENTER, PermissionLevel.READ_AND_COMMENT, OWNER)
    return document


# ============= Services =============

@pytest.fixture
def embedding_service() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def completion_service() -> FakeCompletionService:
    return FakeCompletionService(default="Introduction\n\nWe will deliver the services as [Company Name].")


@pytest.fixture
def chunk_store(session) -> SQLChunkStore:
    return SQLChunkStore(session)


@pytest.fixture
def chunker() -> WordWindowChunker:
    return WordWindowChunker(ChunkingConfig(chunk_size=40, overlap=10, min_words=30))


@pytest.fixture
def ingestion(chunk_store, embedding_service, chunker) -> IngestionService:
    return IngestionService(
        chunk_store,
        embedding_service,
        chunker,
        IngestionConfig(embedding_delay_seconds=0, embedding_dimension=EMBEDDING_DIMENSION),
        DocumentLockRegistry(),
    )


@pytest.fixture
def retriever(chunk_store, embedding_service) -> Retriever:
    return Retriever(chunk_store, embedding_service, RetrievalConfig(top_k=3))


@pytest.fixture
def validation_config() -> ValidationConfig:
    return ValidationConfig()


@pytest.fixture
def engine(session, completion_service, ingestion, retriever, validation_config) -> ProposalEngine:
    proposal_repo = SQLProposalRepository(session)
    assignment_repo = SQLAssignmentRepository(session)
    user_repo = SQLUserRepository(session)
    return ProposalEngine(
        document_repo=SQLDocumentRepository(session),
        proposal_repo=proposal_repo,
        permissions=PermissionAuthority(proposal_repo, assignment_repo, user_repo),
        collaboration=CollaborationService(
            assignment_repo,
            SQLActivityLogRepository(session),
            SQLCommentRepository(session),
            user_repo,
        ),
        drafter=GroundedDrafter(retriever, completion_service, GenerationConfig()),
        validator=ProposalValidator(completion_service, validation_config),
        ingestion=ingestion,
    )
