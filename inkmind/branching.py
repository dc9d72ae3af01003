# branching.py
"""
Branch/tweak: continue an existing design's lineage with a new generation.

`prepare_branch` only reads. It resolves the source design and returns the
generation request for its child. `generate_design` performs the generation
and creates the new design row afterwards, so a failed or interrupted
generation never leaves a lineage node behind.
"""

import logging
from typing import Optional

from domain import Actor, Design
from errors import NotFoundError, NotReadyError
from generation import GenerationRequest, ImageGenerator
from repository import DesignRepository

logger = logging.getLogger(__name__)


async def load_branch_source(repo: DesignRepository, source_id, actor: Actor) -> Design:
    """Source design for a branch; hidden designs look exactly like missing ones."""
    source = await repo.get(source_id)
    if not source.visible_to(actor):
        raise NotFoundError(source_id)
    if not source.image_ref:
        raise NotReadyError(source.id)
    return source


async def prepare_branch(
    repo: DesignRepository,
    source_id,
    actor: Actor,
    new_prompt: Optional[str] = None,
    new_reference_image_ref: Optional[str] = None,
) -> GenerationRequest:
    """
    Builds the generation request for a child of `source_id`.

    The reference image defaults to the source's own render ("use this as my
    new reference") and the prompt to the source's prompt.
    """
    source = await load_branch_source(repo, source_id, actor)
    logger.info(f"Preparing branch from design {source.id} for {actor.id}")
    return GenerationRequest(
        prompt=new_prompt if new_prompt is not None else source.prompt,
        style=source.style,
        placement=source.placement,
        reference_image_ref=new_reference_image_ref or source.image_ref,
        parent_id=source.id,
    )


async def generate_design(
    repo: DesignRepository,
    generator: ImageGenerator,
    request: GenerationRequest,
    actor: Actor,
) -> Design:
    """
    Runs a generation and stores the result as a new design.

    When `request.parent_id` is set the parent must be visible to the actor
    and finished; the check happens before the (slow) external call.
    """
    if request.parent_id is not None:
        await load_branch_source(repo, request.parent_id, actor)

    image_ref = await generator.generate(request, actor.id)

    return await repo.create(
        owner_id=actor.id,
        prompt=request.prompt,
        style=request.style,
        placement=request.placement,
        image_ref=image_ref,
        reference_image_ref=request.reference_image_ref,
        parent_id=request.parent_id,
    )
