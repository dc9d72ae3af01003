# models.py
"""
Database models for InkMind.

This file defines all SQLAlchemy models used by the application,
providing a single source of truth for the database schema.
"""

import uuid

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, Uuid, func, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from db import Base
from domain import DesignStatus, Role


# -----------------------
# Models
# -----------------------
class User(Base):
    __tablename__ = "users"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False, index=True)
    hashed_password = Column(String(512), nullable=False)
    role = Column(String(32), nullable=False, default=Role.USER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    designs = relationship("DesignRecord", back_populates="owner", cascade="all, delete-orphan")
    collections = relationship("Collection", back_populates="owner", cascade="all, delete-orphan")


class Collection(Base):
    __tablename__ = "collections"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="collections")


class DesignRecord(Base):
    __tablename__ = "designs"
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    prompt = Column(Text, nullable=True)
    style = Column(String(64), nullable=True)
    placement = Column(String(64), nullable=True)

    image_ref = Column(String(2048), nullable=True)
    reference_image_ref = Column(String(2048), nullable=True)
    final_image_ref = Column(String(2048), nullable=True)

    # Plain key, not a foreign key: deleting a parent leaves a dangling link
    # which the lineage walker treats as the end of the history.
    parent_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    collection_id = Column(Uuid(as_uuid=True), ForeignKey("collections.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(32), nullable=False, default=DesignStatus.DRAFT.value)
    is_starred = Column(Boolean, nullable=False, default=False)
    is_shared = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    owner = relationship("User", back_populates="designs")

    __table_args__ = (
        Index("ix_designs_owner_created", "owner_id", "created_at"),
    )
