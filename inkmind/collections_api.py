# collections_api.py
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_actor
from db import get_db
from domain import Actor
from models import Collection

router = APIRouter(prefix="/collections", tags=["Collections"])

DEFAULT_COLLECTION = "General"


class CollectionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

class CollectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    created_at: Optional[datetime] = None


@router.get("/", response_model=List[CollectionOut], summary="List the user's collections")
async def list_collections(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Lists collections by name. A user without any collection gets a
    "General" one on first access.
    """
    query = select(Collection).where(Collection.owner_id == actor.id).order_by(Collection.name)
    collections = (await db.execute(query)).scalars().all()
    if not collections:
        general = Collection(owner_id=actor.id, name=DEFAULT_COLLECTION)
        db.add(general)
        await db.commit()
        await db.refresh(general)
        collections = [general]
    return collections


@router.post("/", response_model=CollectionOut, status_code=status.HTTP_201_CREATED, summary="Create a collection")
async def create_collection(
    payload: CollectionIn,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    collection = Collection(owner_id=actor.id, name=payload.name.strip())
    db.add(collection)
    await db.commit()
    await db.refresh(collection)
    return collection
