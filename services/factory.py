# services/factory.py
from functools import lru_cache

import chromadb
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Depends

from database.session import get_db
from config import (
    settings, ChunkingConfig, GenerationConfig, IngestionConfig, RetrievalConfig, ValidationConfig
)
from core.interfaces import (
    IActivityLogRepository, IAssignmentRepository, IChunkStore, ICommentRepository,
    ICompletionService, IDocumentRepository, IEmbeddingService, IProposalRepository,
    IUserRepository
)
from infrastructure.chunker import WordWindowChunker
from infrastructure.embedding_services import SentenceTransformerEmbedding
from infrastructure.repositories import (
    SQLActivityLogRepository, SQLAssignmentRepository, SQLCommentRepository,
    SQLDocumentRepository, SQLProposalRepository, SQLUserRepository
)
from infrastructure.vector_stores import ChromaDBChunkStore, SQLChunkStore
from services.collaboration_service import CollaborationService
from services.drafter import GroundedDrafter
from services.ingestion_service import IngestionService
from services.llm_service import LLMService
from services.permission_service import PermissionAuthority
from services.proposal_engine import ProposalEngine
from services.retriever import Retriever
from services.validator import ProposalValidator

# Provider functions for each component

@lru_cache(maxsize=1)
def _get_chroma_client():
    return chromadb.PersistentClient(path=settings.VECTOR_DB_PATH)

def get_chunk_store(session: AsyncSession = Depends(get_db)) -> IChunkStore:
    """Create chunk store based on configuration."""
    if settings.VECTOR_STORE_TYPE == "sql":
        return SQLChunkStore(session)
    elif settings.VECTOR_STORE_TYPE == "chromadb":
        return ChromaDBChunkStore(_get_chroma_client(), settings.CHROMA_COLLECTION_NAME)
    else:
        raise ValueError(f"Unknown vector store type: {settings.VECTOR_STORE_TYPE}")

def get_embedding_service() -> IEmbeddingService:
    """Create embedding service based on configuration."""
    return SentenceTransformerEmbedding(settings.EMBEDDING_MODEL_NAME)

def get_completion_service() -> ICompletionService:
    """Create completion service based on configuration."""
    return LLMService(
        base_url=settings.LLM_BASE_URL,
        model=settings.LLM_MODEL_NAME,
        api_key=settings.LLM_API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
    )

def get_document_repository(session: AsyncSession = Depends(get_db)) -> IDocumentRepository:
    return SQLDocumentRepository(session)

def get_proposal_repository(session: AsyncSession = Depends(get_db)) -> IProposalRepository:
    return SQLProposalRepository(session)

def get_user_repository(session: AsyncSession = Depends(get_db)) -> IUserRepository:
    return SQLUserRepository(session)

def get_assignment_repository(session: AsyncSession = Depends(get_db)) -> IAssignmentRepository:
    return SQLAssignmentRepository(session)

def get_activity_log_repository(session: AsyncSession = Depends(get_db)) -> IActivityLogRepository:
    return SQLActivityLogRepository(session)

def get_comment_repository(session: AsyncSession = Depends(get_db)) -> ICommentRepository:
    return SQLCommentRepository(session)

# Main service provider using FastAPI DI
def get_proposal_engine(
    chunk_store: IChunkStore = Depends(get_chunk_store),
    embedding_service: IEmbeddingService = Depends(get_embedding_service),
    completion_service: ICompletionService = Depends(get_completion_service),
    document_repo: IDocumentRepository = Depends(get_document_repository),
    proposal_repo: IProposalRepository = Depends(get_proposal_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
    assignment_repo: IAssignmentRepository = Depends(get_assignment_repository),
    activity_repo: IActivityLogRepository = Depends(get_activity_log_repository),
    comment_repo: ICommentRepository = Depends(get_comment_repository),
) -> ProposalEngine:
    """
    Create the proposal engine with full dependency injection.

    FastAPI provides every dependency from its provider; tests override
    get_embedding_service / get_completion_service with fakes.
    """
    retriever = Retriever(chunk_store, embedding_service, RetrievalConfig.from_settings())
    return ProposalEngine(
        document_repo=document_repo,
        proposal_repo=proposal_repo,
        permissions=PermissionAuthority(proposal_repo, assignment_repo, user_repo),
        collaboration=CollaborationService(assignment_repo, activity_repo, comment_repo, user_repo),
        drafter=GroundedDrafter(retriever, completion_service, GenerationConfig.from_settings()),
        validator=ProposalValidator(completion_service, ValidationConfig.from_settings()),
        ingestion=IngestionService(
            chunk_store,
            embedding_service,
            WordWindowChunker(ChunkingConfig.from_settings()),
            IngestionConfig.from_settings(),
        ),
    )
