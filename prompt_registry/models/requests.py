"""Pydantic request models for the prompt registry API."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class CreatePromptRequest(BaseModel):
    """Request to create a custom prompt block."""
    slug: str = Field(..., description="Unique slug (lowercase letters, digits, '-' and '_')")
    name: str = Field(..., description="Display name")
    content: str = Field(..., description="Default prompt content")
    description: str = Field("", description="What the block is for")
    categories: List[str] = Field(default_factory=list, description="Category tags")
    tier: int = Field(3, description="Editability tier (1=locked, 2=caution, 3=open)")
    variants: Dict[str, str] = Field(default_factory=dict, description="Context key -> variant content")
    commit_message: str = Field("", description="Why the block is being added (required)")


class UpdatePromptRequest(BaseModel):
    """Partial update of a prompt; omitted fields are left unchanged."""
    content: Optional[str] = Field(None, description="New default content")
    name: Optional[str] = Field(None, description="New display name")
    description: Optional[str] = Field(None, description="New description")
    categories: Optional[List[str]] = Field(None, description="Replacement category tags")
    tier: Optional[int] = Field(None, description="New editability tier")
    variants: Optional[Dict[str, str]] = Field(None, description="Replacement variant mapping")
    commit_message: str = Field("", description="Description of the change (required)")

    def changed_fields(self) -> Dict:
        return self.model_dump(exclude={"commit_message"}, exclude_none=True)


class UpdateVariantRequest(BaseModel):
    """Set (or clear, with empty content) one variant of a prompt."""
    content: str = Field(..., description="Variant content; empty removes the variant")
    commit_message: str = Field("", description="Description of the change (required)")


class RollbackRequest(BaseModel):
    """Restore a prompt to an earlier version."""
    version: int = Field(..., ge=1, description="Version to restore")
    commit_message: Optional[str] = Field(None, description="Defaults to 'Rollback to version N'")


class AssembleRequest(BaseModel):
    """Assemble a composition into a system prompt."""
    library_id: Optional[str] = Field(None, description="Library whose context section is appended")
    additional_context: Optional[str] = Field(None, description="Extra text appended as its own section")
    is_customer_skill: bool = Field(False, description="Append the customer skill context section")
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Resolution timeout override")
