"""Prompt block API endpoints."""

from fastapi import APIRouter, Depends, Query
import logging
from typing import Optional

from prompt_registry.core.exceptions import NotFoundError, ValidationError
from prompt_registry.dependencies import get_actor_id, get_audit_log, get_block_store
from prompt_registry.domain import block_to_dict
from prompt_registry.models.requests import (
    CreatePromptRequest,
    RollbackRequest,
    UpdatePromptRequest,
    UpdateVariantRequest,
)
from prompt_registry.models.responses import (
    ActionResponse,
    BlockListResponse,
    BlockResponse,
    HistoryResponse,
)
from prompt_registry.services import AuditLog, BlockStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prompts", tags=["prompts"])


@router.get("", response_model=BlockListResponse)
async def list_prompts(store: BlockStore = Depends(get_block_store)):
    """
    List every prompt block.

    Returns:
        BlockListResponse: Builtins (overrides applied) then custom blocks
    """
    blocks = await store.list_blocks()
    return BlockListResponse(
        prompts=[BlockResponse(**block_to_dict(block)) for block in blocks],
        count=len(blocks),
    )


@router.get("/{slug}", response_model=BlockResponse)
async def get_prompt(slug: str, store: BlockStore = Depends(get_block_store)):
    """Get the effective block for a slug."""
    block = await store.get_block(slug)
    return BlockResponse(**block_to_dict(block))


@router.post("", response_model=BlockResponse, status_code=201)
async def create_prompt(
    request: CreatePromptRequest,
    actor_id: str = Depends(get_actor_id),
    store: BlockStore = Depends(get_block_store),
):
    """
    Create a custom prompt block.

    Args:
        request: New block fields and commit message

    Returns:
        BlockResponse: The created block
    """
    block = await store.create_custom_block(
        slug=request.slug,
        name=request.name,
        content=request.content,
        commit_message=request.commit_message,
        actor_id=actor_id,
        description=request.description,
        categories=request.categories,
        tier=request.tier,
        variants=request.variants,
    )
    return BlockResponse(**block_to_dict(block))


@router.put("/{slug}", response_model=BlockResponse)
async def update_prompt(
    slug: str,
    request: UpdatePromptRequest,
    actor_id: str = Depends(get_actor_id),
    store: BlockStore = Depends(get_block_store),
):
    """
    Update a prompt.

    Updating a builtin creates an override; updating an override or a
    custom block changes it in place.
    """
    current = await store.get_block(slug)
    block = await store.update_block(
        current.id,
        request.changed_fields(),
        commit_message=request.commit_message,
        actor_id=actor_id,
    )
    return BlockResponse(**block_to_dict(block))


@router.put("/{slug}/variants/{context}", response_model=BlockResponse)
async def update_prompt_variant(
    slug: str,
    context: str,
    request: UpdateVariantRequest,
    actor_id: str = Depends(get_actor_id),
    store: BlockStore = Depends(get_block_store),
):
    """Set one variant of a prompt (empty content removes it)."""
    block = await store.update_variant(
        slug,
        context,
        request.content,
        commit_message=request.commit_message,
        actor_id=actor_id,
    )
    return BlockResponse(**block_to_dict(block))


@router.delete("/{slug}", response_model=ActionResponse)
async def delete_prompt(
    slug: str,
    action: str = Query("delete", pattern="^(delete|reset)$"),
    commit_message: Optional[str] = Query(None, description="Audit message (a default is recorded if omitted)"),
    actor_id: str = Depends(get_actor_id),
    store: BlockStore = Depends(get_block_store),
):
    """
    Delete a custom prompt, or reset a builtin to its default.

    Args:
        action: "delete" for custom prompts, "reset" for overridden builtins
    """
    current = await store.get_block(slug)

    if action == "reset":
        if not await store.reset_to_default(slug, actor_id=actor_id, commit_message=commit_message):
            raise ValidationError("Nothing to reset - prompt has no override", field="action")
        return ActionResponse(message="Prompt reset to default", slug=slug)

    if current.source.value != "custom":
        raise ValidationError(
            "Cannot delete built-in prompts. Use ?action=reset to reset to default.",
            field="action",
        )

    if not await store.delete_custom_block(current.id, actor_id=actor_id, commit_message=commit_message):
        raise NotFoundError("Prompt not found or already deleted")
    return ActionResponse(message="Prompt deleted", slug=slug)


@router.get("/{slug}/history", response_model=HistoryResponse)
async def get_prompt_history(
    slug: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    audit_log: AuditLog = Depends(get_audit_log),
):
    """Revisions of a slug, newest first (including reset overrides)."""
    revisions = await audit_log.list_history_for_slug(slug, offset=offset, limit=limit)
    return HistoryResponse(
        slug=slug,
        revisions=[revision.to_dict() for revision in revisions],
        offset=offset,
        limit=limit,
    )


@router.post("/{slug}/rollback", response_model=BlockResponse)
async def rollback_prompt(
    slug: str,
    request: RollbackRequest,
    actor_id: str = Depends(get_actor_id),
    store: BlockStore = Depends(get_block_store),
):
    """Restore the content and variants of an earlier version."""
    block = await store.rollback_to_version(
        slug,
        request.version,
        actor_id=actor_id,
        commit_message=request.commit_message,
    )
    logger.info(f"Prompt '{slug}' rolled back to v{request.version} by {actor_id}")
    return BlockResponse(**block_to_dict(block))
