"""Composition API endpoints."""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from prompt_registry.dependencies import get_composition_resolver, get_prompt_service
from prompt_registry.models.requests import AssembleRequest
from prompt_registry.models.responses import (
    AssembleResponse,
    CompositionListResponse,
    CompositionResponse,
    TokenBreakdownResponse,
)
from prompt_registry.services import CompositionResolver, PromptService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compositions", tags=["compositions"])


@router.get("", response_model=CompositionListResponse)
async def list_compositions(resolver: CompositionResolver = Depends(get_composition_resolver)):
    """List compositions and the legacy aliases that map onto them."""
    compositions = resolver.list_compositions()
    return CompositionListResponse(
        compositions=[CompositionResponse(**c.to_dict()) for c in compositions],
        aliases=resolver.catalog.aliases,
        count=len(compositions),
    )


@router.get("/{composition_id}", response_model=CompositionResponse)
async def get_composition(
    composition_id: str,
    resolver: CompositionResolver = Depends(get_composition_resolver),
):
    """Get a composition by id or legacy alias."""
    return CompositionResponse(**resolver.get_composition(composition_id).to_dict())


@router.post("/{composition_id}/assemble", response_model=AssembleResponse)
async def assemble_composition(
    composition_id: str,
    request: Optional[AssembleRequest] = None,
    service: PromptService = Depends(get_prompt_service),
):
    """
    Assemble a composition into a system prompt.

    Returns:
        AssembleResponse: Prompt text plus the ids of every contributing block
    """
    request = request or AssembleRequest()
    result = await service.assemble_system_prompt(
        composition_id,
        library_id=request.library_id,
        additional_context=request.additional_context,
        timeout=request.timeout_seconds,
        is_customer_skill=request.is_customer_skill,
    )
    return AssembleResponse(**result.to_dict())


@router.get("/{composition_id}/tokens", response_model=TokenBreakdownResponse)
async def get_token_breakdown(
    composition_id: str,
    timeout_seconds: Optional[float] = Query(None, gt=0),
    resolver: CompositionResolver = Depends(get_composition_resolver),
):
    """Estimated tokens per block of a composition."""
    return TokenBreakdownResponse(**await resolver.token_breakdown(composition_id, timeout=timeout_seconds))
