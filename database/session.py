# database/session.py

import logging
from datetime import datetime
from typing import AsyncGenerator

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

# Setup SQLAlchemy async engine and session maker
async_engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True  # Check connection health before using
)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)
Base = declarative_base()

# ============= Models =============

class UserEntity(Base):
    __tablename__ = "users"
    user_id = Column(String, primary_key=True)
    organization_id = Column(String, index=True, nullable=True)
    name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")

class SourceDocumentEntity(Base):
    __tablename__ = "source_documents"
    id = Column(String, primary_key=True)
    organization_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    sector = Column(String, nullable=True)
    estimated_value = Column(Float, nullable=True)
    issuing_authority = Column(String, nullable=True)
    kind = Column(String, nullable=False, default="platform")
    timestamp = Column(DateTime, default=datetime.utcnow)

class DocumentSectionEntity(Base):
    __tablename__ = "document_sections"
    __table_args__ = (UniqueConstraint("document_id", "section_id"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(String, ForeignKey("source_documents.id", ondelete="CASCADE"),
                         index=True, nullable=False)
    section_id = Column(String, nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    is_mandatory = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)

class ContentChunkEntity(Base):
    __tablename__ = "content_chunks"
    id = Column(String, primary_key=True)
    document_id = Column(String, index=True, nullable=False)
    section_id = Column(String, nullable=True)
    section_type = Column(String, index=True, nullable=True)
    chunk_index = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    meta = Column("metadata", JSON, nullable=False, default=dict)

class ProposalEntity(Base):
    __tablename__ = "proposals"
    __table_args__ = (UniqueConstraint("document_id", "organization_id"),)
    id = Column(String, primary_key=True)
    document_id = Column(String, ForeignKey("source_documents.id"), index=True, nullable=False)
    organization_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False, default="")
    timestamp = Column(DateTime, default=datetime.utcnow)

class ProposalSectionEntity(Base):
    __tablename__ = "proposal_sections"
    __table_args__ = (UniqueConstraint("proposal_id", "section_id"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String, ForeignKey("proposals.id", ondelete="CASCADE"),
                         index=True, nullable=False)
    section_id = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    word_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class AssignmentEntity(Base):
    __tablename__ = "proposal_assignments"
    __table_args__ = (UniqueConstraint("proposal_id", "section_id", "user_id"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String, ForeignKey("proposals.id", ondelete="CASCADE"),
                         index=True, nullable=False)
    section_id = Column(String, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    permission = Column(String, nullable=False)  # PermissionLevel name
    assigned_by = Column(String, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)

class ActivityLogEntity(Base):
    __tablename__ = "activity_log"
    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String, index=True, nullable=False)
    section_id = Column(String, nullable=True)
    user_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

class CommentEntity(Base):
    __tablename__ = "section_comments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String, index=True, nullable=False)
    section_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ============= Dependencies =============

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide database session for FastAPI dependency injection"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_models() -> None:
    """Create all tables"""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")
