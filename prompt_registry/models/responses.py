"""Pydantic response models for the prompt registry API."""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class BlockResponse(BaseModel):
    """One prompt block as a reader sees it."""
    id: str = Field(..., description="Block identifier")
    slug: str = Field(..., description="Block slug")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="What the block is for")
    content: str = Field(..., description="Default content")
    source: str = Field(..., description="builtin, override or custom")
    tier: int = Field(..., description="Editability tier")
    categories: List[str] = Field(default_factory=list, description="Category tags")
    variants: Dict[str, str] = Field(default_factory=dict, description="Context key -> variant content")
    version: int = Field(0, description="Latest revision version (0 for untouched builtins)")
    tokens: int = Field(..., description="Estimated token count of the content")
    updated_at: Optional[str] = Field(None, description="Last modification timestamp")
    overrides_slug: Optional[str] = Field(None, description="Builtin replaced by this override")


class BlockListResponse(BaseModel):
    """Response for listing prompt blocks."""
    prompts: List[BlockResponse] = Field(..., description="Builtins first, then custom blocks")
    count: int = Field(..., description="Total count of blocks")


class RevisionResponse(BaseModel):
    """One audit entry."""
    revision_id: str
    block_id: str
    slug: str
    actor_id: str
    commit_message: str
    action: str
    before: str
    after: str
    version: int
    created_at: str
    variants_snapshot: Dict[str, str] = Field(default_factory=dict)
    diff: Optional[str] = None


class HistoryResponse(BaseModel):
    """Revisions of a slug, newest first."""
    slug: str
    revisions: List[RevisionResponse]
    offset: int
    limit: int


class ActionResponse(BaseModel):
    """Result of a reset or delete."""
    message: str = Field(..., description="Human-readable message")
    slug: str = Field(..., description="Affected slug")


class CompositionResponse(BaseModel):
    """Composition recipe."""
    composition_id: str
    name: str
    description: str = ""
    category: str
    layout: str
    output_format: str
    output_schema: Optional[str] = None
    blocks: List[Dict[str, Optional[str]]] = Field(..., description="Ordered block references")


class CompositionListResponse(BaseModel):
    compositions: List[CompositionResponse]
    aliases: Dict[str, str] = Field(..., description="Legacy name -> composition id")
    count: int


class AssembleResponse(BaseModel):
    """Assembled system prompt with its block manifest."""
    prompt: str
    composition_id: str
    block_ids: List[str]
    output_format: str


class TokenBreakdownResponse(BaseModel):
    composition_id: str
    blocks: List[Dict[str, Any]]
    total_tokens: int
