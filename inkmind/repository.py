# repository.py
"""
Design Record Store.

`DesignRepository` owns every rule about what may be written: required
fields on create, the closed status set, the existence of a new design's
parent, and the write-once fields on update. Backends only implement the
raw reads and writes (`_insert`, `_apply`, `get`, `delete`, the listings).

The repository is passed explicitly to the lineage walker, the branch
operation and the lifecycle services. Nothing keeps ambient state.
"""

import abc
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain import Design, DesignStatus, DesignUpdate, MUTABLE_FIELDS, WRITE_ONCE_FIELDS
from errors import ImmutableFieldError, NotFoundError, ValidationError
from models import DesignRecord

logger = logging.getLogger(__name__)

CREATE_FIELDS = frozenset(
    {"owner_id", "prompt", "style", "placement", "image_ref", "reference_image_ref",
     "final_image_ref", "parent_id", "collection_id", "status", "is_starred", "is_shared"}
)


def as_design_id(value: Any) -> uuid.UUID:
    """Coerces a path/query value into a design id; garbage ids simply do not exist."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(value)


def _check_status(value: Any) -> str:
    try:
        return DesignStatus(value).value
    except ValueError:
        allowed = ", ".join(s.value for s in DesignStatus)
        raise ValidationError(f"Unknown status '{value}'. Expected one of: {allowed}.")


def _check_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Coerces update values to their column types; `None` only where the column is nullable."""
    try:
        update = DesignUpdate.model_validate(changes)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise ValidationError(f"Invalid value for '{field}': {error['msg']}.")
    values = update.model_dump(include=set(changes))
    if "status" in values:
        values["status"] = values["status"].value
    return values


class DesignRepository(abc.ABC):
    """Durable CRUD for designs, scoped by owner."""

    async def create(self, **fields) -> Design:
        """Validates and stores a new design, assigning `id` and `created_at`."""
        unknown = set(fields) - CREATE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown or store-assigned fields: {', '.join(sorted(unknown))}.")
        if not fields.get("owner_id"):
            raise ValidationError("owner_id is required.")

        values = dict(fields)
        values["owner_id"] = as_design_id(values["owner_id"])
        values["status"] = _check_status(values.get("status") or DesignStatus.DRAFT)

        parent_id = values.get("parent_id")
        if parent_id is not None:
            try:
                values["parent_id"] = (await self.get(parent_id)).id
            except NotFoundError:
                raise ValidationError(f"Parent design {parent_id} does not exist.")

        values["id"] = uuid.uuid4()
        values["created_at"] = datetime.now(timezone.utc)
        design = await self._insert(values)
        logger.info(f"Created design {design.id} (parent={design.parent_id}) for owner {design.owner_id}")
        return design

    async def update(self, design_id, changes: Dict[str, Any]) -> Design:
        """Applies `changes` to the mutable fields of an existing design."""
        for field in changes:
            if field in WRITE_ONCE_FIELDS or (field in Design.model_fields and field not in MUTABLE_FIELDS):
                raise ImmutableFieldError(field)
            if field not in MUTABLE_FIELDS:
                raise ValidationError(f"Unknown field '{field}'.")
        if not changes:
            raise ValidationError("No changes supplied.")

        if "status" in changes:
            _check_status(changes["status"])
        values = _check_changes(changes)

        design = await self.get(design_id)
        return await self._apply(design.id, values)

    @abc.abstractmethod
    async def get(self, design_id) -> Design:
        """Returns the design or raises `NotFoundError`."""

    @abc.abstractmethod
    async def delete(self, design_id) -> None:
        """Removes the record. Blob cleanup is the caller's job (see `lifecycle.delete_design`)."""

    @abc.abstractmethod
    async def list_by_owner(
        self,
        owner_id,
        starred: Optional[bool] = None,
        collection_id: Optional[uuid.UUID] = None,
        status: Optional[DesignStatus] = None,
    ) -> List[Design]:
        """Owner's designs, newest first."""

    @abc.abstractmethod
    async def list_older_than(self, cutoff: datetime, starred: bool = False) -> List[Design]:
        """Designs created before `cutoff` with the given starred flag."""

    @abc.abstractmethod
    async def _insert(self, values: Dict[str, Any]) -> Design:
        ...

    @abc.abstractmethod
    async def _apply(self, design_id: uuid.UUID, values: Dict[str, Any]) -> Design:
        ...


class SQLDesignRepository(DesignRepository):
    """Design store backed by the `designs` table through an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _row(self, design_id) -> DesignRecord:
        row = await self.session.get(DesignRecord, as_design_id(design_id))
        if row is None:
            raise NotFoundError(design_id)
        return row

    async def _commit(self):
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Database error while writing a design.")
            raise

    async def get(self, design_id) -> Design:
        return Design.model_validate(await self._row(design_id))

    async def _insert(self, values: Dict[str, Any]) -> Design:
        row = DesignRecord(**values)
        self.session.add(row)
        await self._commit()
        await self.session.refresh(row)
        return Design.model_validate(row)

    async def _apply(self, design_id: uuid.UUID, values: Dict[str, Any]) -> Design:
        row = await self._row(design_id)
        for field, value in values.items():
            setattr(row, field, value)
        await self._commit()
        await self.session.refresh(row)
        return Design.model_validate(row)

    async def delete(self, design_id) -> None:
        row = await self._row(design_id)
        await self.session.delete(row)
        await self._commit()

    async def list_by_owner(self, owner_id, starred=None, collection_id=None, status=None) -> List[Design]:
        query = select(DesignRecord).where(DesignRecord.owner_id == as_design_id(owner_id))
        if starred is not None:
            query = query.where(DesignRecord.is_starred == starred)
        if collection_id is not None:
            query = query.where(DesignRecord.collection_id == collection_id)
        if status is not None:
            query = query.where(DesignRecord.status == _check_status(status))
        query = query.order_by(DesignRecord.created_at.desc())
        result = await self.session.execute(query)
        return [Design.model_validate(row) for row in result.scalars().all()]

    async def list_older_than(self, cutoff: datetime, starred: bool = False) -> List[Design]:
        query = (
            select(DesignRecord)
            .where(DesignRecord.created_at < cutoff, DesignRecord.is_starred == starred)
            .order_by(DesignRecord.created_at)
        )
        result = await self.session.execute(query)
        return [Design.model_validate(row) for row in result.scalars().all()]
