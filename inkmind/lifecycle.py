# lifecycle.py
"""
Deleting designs: by their owner, or by the retention sweep.

Blobs are released before the record is deleted. A failed release is
logged and skipped; the record delete still goes ahead, and leaked blobs
are left for a storage reconciliation job.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from domain import Actor, Design
from errors import NotFoundError, StorageError
from repository import DesignRepository
from settings import settings
from storage import BlobStorage

logger = logging.getLogger(__name__)

# Uploaded reference images live under this folder; any other reference
# (e.g. the parent's render reused by a branch) belongs to another design.
REFERENCE_FOLDER = "/references/"


def blob_refs(design: Design, storage: BlobStorage) -> List[str]:
    """Blobs that belong to `design` alone."""
    refs = [design.image_ref, design.final_image_ref]
    if design.reference_image_ref and REFERENCE_FOLDER in design.reference_image_ref:
        refs.append(design.reference_image_ref)
    return [ref for ref in refs if ref and storage.owns(ref)]


async def release_blob(storage: BlobStorage, ref: Optional[str], design_id) -> bool:
    """Best-effort release of one blob; refs outside this store are left alone."""
    if not storage.owns(ref):
        return False
    try:
        await storage.release(ref)
    except StorageError as e:
        logger.warning(f"Leaving blob behind for design {design_id}: {e.detail}")
        return False
    return True


async def release_blobs(design: Design, storage: BlobStorage) -> int:
    """Best-effort release of a design's blobs. Returns how many were released."""
    released = 0
    for ref in blob_refs(design, storage):
        if await release_blob(storage, ref, design.id):
            released += 1
    return released


async def delete_design(repo: DesignRepository, storage: BlobStorage, design_id, actor: Actor) -> Design:
    """Deletes a design owned by `actor` (or any design, for admins)."""
    design = await repo.get(design_id)
    if design.owner_id != actor.id and not actor.is_admin:
        raise NotFoundError(design_id)

    await release_blobs(design, storage)
    await repo.delete(design.id)
    logger.info(f"Design {design.id} deleted by {actor.id}")
    return design


async def purge_old_designs(
    repo: DesignRepository,
    storage: BlobStorage,
    older_than_days: Optional[int] = None,
    dry_run: bool = True,
) -> Dict[str, Any]:
    """
    Retention sweep: removes unstarred designs older than the threshold.

    A dry run reports what would be removed without touching anything.
    """
    days = older_than_days if older_than_days is not None else settings.PURGE_AFTER_DAYS
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    candidates = await repo.list_older_than(cutoff, starred=False)

    if not dry_run:
        for design in candidates:
            await release_blobs(design, storage)
            await repo.delete(design.id)
        logger.info(f"Purge: removed {len(candidates)} designs created before {cutoff.isoformat()}")
    else:
        logger.info(f"Purge dry run: {len(candidates)} designs created before {cutoff.isoformat()}")

    return {
        "dry_run": dry_run,
        "cutoff": cutoff,
        "count": len(candidates),
        "design_ids": [design.id for design in candidates],
    }
