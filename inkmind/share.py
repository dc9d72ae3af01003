# share.py
"""
Public share page.

Anyone with the link can view a shared design, the history it was
branched from, and a before/after comparison against its parent. A
corrupted history degrades to "history unavailable" instead of an error.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from comparison import comparison_for
from designs import get_design_repository
from domain import Design
from errors import CycleDetectedError, NotFoundError
from lineage import Lineage, get_lineage
from repository import DesignRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/share", tags=["Share"])


class HistoryEntry(BaseModel):
    id: uuid.UUID
    image_ref: Optional[str]
    prompt: Optional[str]
    created_at: datetime
    is_current: bool
    branch_link: str

class ShareView(BaseModel):
    title: str
    design: Design
    history: List[HistoryEntry]
    history_available: bool
    comparison: Optional[Dict[str, Any]]


def share_title(prompt: Optional[str]) -> str:
    words = (prompt or "").split()[:3]
    return f"InkMind: {' '.join(words) or 'Shared'} Tattoo Design"


def branch_link(design_id) -> str:
    return f"/?parent_id={design_id}"


def history_entries(lineage: Lineage) -> List[HistoryEntry]:
    return [
        HistoryEntry(
            id=design.id,
            image_ref=design.image_ref,
            prompt=design.prompt,
            created_at=design.created_at,
            is_current=design.id == lineage.current.id,
            branch_link=branch_link(design.id),
        )
        for design in lineage.chain
    ]


@router.get("/{design_id}", response_model=ShareView, summary="Public share page for a design")
async def share_view(design_id: uuid.UUID, repo: DesignRepository = Depends(get_design_repository)):
    design = await repo.get(design_id)
    if not design.is_shared:
        raise NotFoundError(design_id)

    try:
        lineage = await get_lineage(repo, design.id)
    except CycleDetectedError:
        logger.error(f"Share view for {design.id}: history unavailable (cycle in lineage)")
        lineage = None

    if lineage is None:
        return ShareView(
            title=share_title(design.prompt),
            design=design,
            history=[],
            history_available=False,
            comparison=None,
        )

    slider = comparison_for(lineage)
    return ShareView(
        title=share_title(design.prompt),
        design=design,
        history=history_entries(lineage),
        history_available=True,
        comparison=slider.to_dict() if slider else None,
    )
