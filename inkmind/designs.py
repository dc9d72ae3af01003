# designs.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, Query, Response, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

# Local application imports
from auth import get_current_actor, require_role
from branching import generate_design, prepare_branch
from db import get_db
from domain import Actor, Design, DesignStatus, Role
from errors import NotFoundError, ValidationError
from generation import GenerationRequest, ImageGenerator, get_generator
from lifecycle import delete_design, release_blob
from lineage import get_lineage
from models import Collection
from repository import DesignRepository, SQLDesignRepository
from storage import BlobStorage, blob_path, get_storage, is_data_url

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/designs", tags=["Designs"])

ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MB

# Set by dedicated endpoints only (submit, final-image upload).
RESERVED_UPDATE_FIELDS = frozenset({"submitted_at", "final_image_ref"})


# ===================================================================
# Pydantic Schemas for API Contracts
# ===================================================================

class SaveDesignRequest(BaseModel):
    """Request body for saving a generated candidate to the library."""
    image_ref: str = Field(..., description="Public URL of the render, or a base64 data URL to upload.")
    prompt: Optional[str] = Field(None, max_length=2000)
    style: Optional[str] = Field(None, max_length=64)
    placement: Optional[str] = Field(None, max_length=64)
    reference_image_ref: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    collection_id: Optional[uuid.UUID] = None

class BranchRequest(BaseModel):
    """Request body for branching off an existing design."""
    prompt: Optional[str] = Field(None, max_length=2000, examples=["dragon, add fire"])
    reference_image_ref: Optional[str] = None

class UploadResponse(BaseModel):
    """Response model for a successful file upload."""
    url: str

class FavoriteResponse(BaseModel):
    id: uuid.UUID
    is_starred: bool

class LineageResponse(BaseModel):
    """`GET lineage(design_id)`: ancestors oldest first, then the design itself."""
    ancestors: List[Design]
    current: Design

class PublicDesignResponse(BaseModel):
    image_ref: Optional[str]
    prompt: Optional[str]


# ===================================================================
# Dependencies & helpers
# ===================================================================

async def get_design_repository(db: AsyncSession = Depends(get_db)) -> DesignRepository:
    return SQLDesignRepository(db)


async def _owned(repo: DesignRepository, design_id: uuid.UUID, actor: Actor) -> Design:
    """Designs of other users look exactly like missing ones."""
    design = await repo.get(design_id)
    if design.owner_id != actor.id and not actor.is_admin:
        raise NotFoundError(design_id)
    return design


async def _check_collection(db: AsyncSession, collection_id: Optional[uuid.UUID], actor: Actor):
    if collection_id is None:
        return
    collection = await db.get(Collection, collection_id)
    if collection is None or collection.owner_id != actor.id:
        raise ValidationError(f"Collection {collection_id} not found.")


async def _read_upload(file: UploadFile) -> bytes:
    if file.content_type not in ALLOWED_UPLOAD_TYPES:
        raise ValidationError("Only JPG, PNG and WEBP images are allowed.")
    contents = await file.read()
    if len(contents) > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large (max 10 MB).")
    return contents


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("/", response_model=List[Design], summary="List user's designs")
async def list_user_designs(
    starred: Optional[bool] = None,
    collection_id: Optional[uuid.UUID] = None,
    design_status: Optional[DesignStatus] = Query(None, alias="status"),
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    """
    Retrieves the designs created by the currently authenticated user,
    newest first.
    """
    return await repo.list_by_owner(actor.id, starred=starred, collection_id=collection_id, status=design_status)


@router.post("/", response_model=Design, status_code=status.HTTP_201_CREATED, summary="Save a design to the library")
async def save_design(
    payload: SaveDesignRequest,
    db: AsyncSession = Depends(get_db),
    repo: DesignRepository = Depends(get_design_repository),
    storage: BlobStorage = Depends(get_storage),
    actor: Actor = Depends(get_current_actor),
):
    """
    Persists a generated candidate. Candidates still held as data URLs are
    uploaded to blob storage first.
    """
    await _check_collection(db, payload.collection_id, actor)
    if payload.parent_id is not None:
        parent = await repo.get(payload.parent_id)
        if not parent.visible_to(actor):
            raise ValidationError(f"Parent design {payload.parent_id} does not exist.")

    image_ref = payload.image_ref
    if is_data_url(image_ref):
        image_ref = await storage.put_data_url(image_ref, actor.id)

    fields = payload.model_dump(exclude={"image_ref"})
    return await repo.create(owner_id=actor.id, image_ref=image_ref, **fields)


@router.post("/references", response_model=UploadResponse, status_code=status.HTTP_201_CREATED, summary="Upload a reference image")
async def upload_reference_image(
    file: UploadFile = File(...),
    storage: BlobStorage = Depends(get_storage),
    actor: Actor = Depends(get_current_actor),
):
    """
    Uploads a user's inspiration image to blob storage and returns its
    public URL, to be passed as `reference_image_ref` when generating.
    """
    contents = await _read_upload(file)
    url = await storage.put(blob_path(actor.id, file.content_type, folder="references"), contents)
    return {"url": url}


@router.post("/generate", response_model=Design, status_code=status.HTTP_201_CREATED, summary="Generate a new design with AI")
async def generate(
    req: GenerationRequest,
    repo: DesignRepository = Depends(get_design_repository),
    generator: ImageGenerator = Depends(get_generator),
    actor: Actor = Depends(get_current_actor),
):
    """
    Generates a design and saves it. With `parent_id` set, the new design
    continues that design's lineage. Nothing is saved if generation fails.
    """
    return await generate_design(repo, generator, req, actor)


@router.get("/branch", response_model=GenerationRequest, summary="Prefill a branch from an existing design")
async def branch_link(
    parent_id: uuid.UUID,
    prompt: Optional[str] = None,
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    """
    Target of the "Branch off from here" link: returns the generation
    request a client should pre-populate, with `parent_id` set.
    """
    return await prepare_branch(repo, parent_id, actor, new_prompt=prompt)


@router.get("/{design_id}", response_model=Design, summary="Get one design")
async def get_design(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    return await _owned(repo, design_id, actor)


@router.patch("/{design_id}", response_model=Design, summary="Update a design")
async def update_design(
    design_id: uuid.UUID,
    changes: Dict[str, Any] = Body(..., examples=[{"is_starred": True, "collection_id": None}]),
    db: AsyncSession = Depends(get_db),
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    """
    Updates status, favourite flag, collection or sharing. Lineage and
    rendered images are immutable.
    """
    reserved = RESERVED_UPDATE_FIELDS.intersection(changes)
    if reserved:
        raise ValidationError(f"'{sorted(reserved)[0]}' is set by a dedicated endpoint.")
    if changes.get("collection_id") is not None:
        try:
            changes["collection_id"] = uuid.UUID(str(changes["collection_id"]))
        except ValueError:
            raise ValidationError("collection_id must be a UUID.")
        await _check_collection(db, changes["collection_id"], actor)

    design = await _owned(repo, design_id, actor)
    return await repo.update(design.id, changes)


@router.post("/{design_id}/favorite", response_model=FavoriteResponse, summary="Toggle favourite")
async def toggle_favorite(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    design = await _owned(repo, design_id, actor)
    updated = await repo.update(design.id, {"is_starred": not design.is_starred})
    return FavoriteResponse(id=updated.id, is_starred=updated.is_starred)


@router.post("/{design_id}/submit", response_model=Design, summary="Submit a design for artist review")
async def submit_design(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    design = await _owned(repo, design_id, actor)
    return await repo.update(
        design.id,
        {"status": DesignStatus.PENDING_REVIEW, "submitted_at": datetime.now(timezone.utc)},
    )


@router.post("/{design_id}/final-image", response_model=UploadResponse, summary="Upload the artist's final drawing")
async def upload_final_image(
    design_id: uuid.UUID,
    file: UploadFile = File(...),
    repo: DesignRepository = Depends(get_design_repository),
    storage: BlobStorage = Depends(get_storage),
    actor: Actor = Depends(require_role(Role.STUDIO_ADMIN, Role.ADMIN)),
):
    """
    Studio admins attach the final drawing; the AI render itself stays untouched.
    A replaced drawing is released once the new one is stored.
    """
    design = await repo.get(design_id)
    contents = await _read_upload(file)
    url = await storage.put(blob_path(design.owner_id, file.content_type, folder="final"), contents)
    await repo.update(design.id, {"final_image_ref": url})
    if design.final_image_ref:
        await release_blob(storage, design.final_image_ref, design.id)
    return {"url": url}


@router.delete("/{design_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a design")
async def remove_design(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
    storage: BlobStorage = Depends(get_storage),
    actor: Actor = Depends(get_current_actor),
):
    """Deletes the design and releases its stored images."""
    await delete_design(repo, storage, design_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{design_id}/branch", response_model=Design, status_code=status.HTTP_201_CREATED, summary="Branch off a design")
async def branch_design(
    design_id: uuid.UUID,
    req: BranchRequest,
    repo: DesignRepository = Depends(get_design_repository),
    generator: ImageGenerator = Depends(get_generator),
    actor: Actor = Depends(get_current_actor),
):
    """
    Generates a new iteration of `design_id`. The source design is never
    modified; the new design records it as its parent.
    """
    request = await prepare_branch(repo, design_id, actor, req.prompt, req.reference_image_ref)
    return await generate_design(repo, generator, request, actor)


@router.get("/{design_id}/lineage", response_model=LineageResponse, summary="Design history")
async def design_lineage(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
    actor: Actor = Depends(get_current_actor),
):
    """Ancestors oldest first. A corrupted (cyclic) history answers 409."""
    design = await repo.get(design_id)
    if not design.visible_to(actor):
        raise NotFoundError(design_id)
    lineage = await get_lineage(repo, design.id)
    return LineageResponse(ancestors=lineage.ancestors, current=lineage.current)


@router.get("/{design_id}/public", response_model=PublicDesignResponse, summary="Public preview of a shared design")
async def public_design(
    design_id: uuid.UUID,
    repo: DesignRepository = Depends(get_design_repository),
):
    """No auth. Used to preview the reference when following a branch link."""
    design = await repo.get(design_id)
    if not design.is_shared:
        raise NotFoundError(design_id)
    return PublicDesignResponse(image_ref=design.image_ref, prompt=design.prompt)
