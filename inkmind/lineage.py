# lineage.py
"""
Design lineage: the parent chain a design was branched from.

`walk_lineage` follows `parent_id` links from a design back to its root and
returns the ancestors oldest-first, without the design itself. The walk
stops quietly at a missing ancestor (the intact recent history is still
worth showing) and raises `CycleDetectedError` if a design turns out to be
its own ancestor, since that can only mean corrupted data.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from domain import Design
from errors import CycleDetectedError, NotFoundError
from repository import DesignRepository
from settings import settings

logger = logging.getLogger(__name__)


class Lineage(BaseModel):
    """A design together with its ancestors, oldest first."""
    model_config = ConfigDict(frozen=True)

    ancestors: List[Design]
    current: Design

    @property
    def chain(self) -> List[Design]:
        """Display order: `[oldest, ..., parent, current]`."""
        return [*self.ancestors, self.current]

    @property
    def parent(self) -> Optional[Design]:
        """The immediate parent, when the link to it is intact."""
        if self.ancestors and self.ancestors[-1].id == self.current.parent_id:
            return self.ancestors[-1]
        return None


async def walk_lineage(
    repo: DesignRepository,
    design_id,
    max_depth: Optional[int] = None,
) -> List[Design]:
    """
    Returns the ancestor chain of `design_id`, `[oldest_ancestor, ..., immediate_parent]`.

    Raises:
        NotFoundError: the starting design does not exist.
        CycleDetectedError: an id is visited twice.
    """
    start = await repo.get(design_id)
    return await _walk_from(repo, start, max_depth)


async def _walk_from(repo: DesignRepository, start: Design, max_depth: Optional[int]) -> List[Design]:
    limit = max_depth if max_depth is not None else settings.LINEAGE_MAX_DEPTH
    ancestors: List[Design] = []
    visited = {start.id}
    parent_id = start.parent_id

    while parent_id is not None:
        if parent_id in visited:
            logger.error(f"Lineage cycle detected at design {parent_id} while walking from {start.id}")
            raise CycleDetectedError(parent_id)
        if len(ancestors) >= limit:
            logger.warning(f"Lineage of design {start.id} exceeds {limit} links; truncating.")
            break
        try:
            parent = await repo.get(parent_id)
        except NotFoundError:
            logger.warning(f"Broken lineage link: design {parent_id} (ancestor of {start.id}) is missing.")
            break
        visited.add(parent.id)
        ancestors.insert(0, parent)
        parent_id = parent.parent_id

    return ancestors


async def get_lineage(repo: DesignRepository, design_id, max_depth: Optional[int] = None) -> Lineage:
    """Read contract of the share view: `{ancestors: [...], current: Design}`."""
    current = await repo.get(design_id)
    ancestors = await _walk_from(repo, current, max_depth)
    return Lineage(ancestors=ancestors, current=current)
