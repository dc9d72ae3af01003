# admin.py
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import require_role
from designs import get_design_repository
from domain import Actor, Role
from lifecycle import purge_old_designs
from repository import DesignRepository
from storage import BlobStorage, get_storage

router = APIRouter(prefix="/admin", tags=["Admin"])


class PurgeRequest(BaseModel):
    dry_run: bool = True
    older_than_days: Optional[int] = Field(None, ge=1)

class PurgeResult(BaseModel):
    dry_run: bool
    cutoff: datetime
    count: int
    design_ids: List[uuid.UUID]


@router.post("/purge", response_model=PurgeResult, summary="Remove old non-favourite designs")
async def purge(
    payload: PurgeRequest,
    repo: DesignRepository = Depends(get_design_repository),
    storage: BlobStorage = Depends(get_storage),
    actor: Actor = Depends(require_role(Role.ADMIN)),
):
    """
    Retention sweep. Runs as a dry run unless `dry_run` is explicitly false.
    """
    return await purge_old_designs(repo, storage, payload.older_than_days, dry_run=payload.dry_run)
