"""Block domain entities.

A block is one unit of prompt text. Where it comes from decides how it may be
changed, so each origin is its own type:

    BuiltinBlock   - seeded from the packaged catalog, read-only at runtime
    OverrideBlock  - stored row that supersedes one builtin of the same slug
    CustomBlock    - stored row created by an editor, no builtin behind it
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class BlockSource(str, Enum):
    """Origin of a block."""
    BUILTIN = "builtin"
    OVERRIDE = "override"
    CUSTOM = "custom"


# Editability tiers: 1 = locked, 2 = caution, 3 = open
BLOCK_TIERS = (1, 2, 3)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass
class Block:
    """Fields shared by every block variant."""
    id: str
    slug: str
    name: str
    content: str
    description: str = ""
    categories: List[str] = field(default_factory=list)
    tier: int = 3
    variants: Dict[str, str] = field(default_factory=dict)
    namespace: str = "prompts"
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    source = BlockSource.CUSTOM

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.content)

    def has_variant(self, context: Optional[str]) -> bool:
        """True if context names a variant with non-blank content."""
        return bool(context) and bool(self.variants.get(context, "").strip())

    def content_for(self, context: Optional[str] = None) -> str:
        """Return the variant content for context, or the default content."""
        if self.has_variant(context):
            return self.variants[context]
        return self.content

    def with_changes(self, **changes) -> "Block":
        return replace(self, **changes)


@dataclass
class BuiltinBlock(Block):
    """Block defined by the packaged catalog."""

    source = BlockSource.BUILTIN


@dataclass
class OverrideBlock(Block):
    """Stored block that supersedes the builtin named by overrides_slug."""
    overrides_slug: str = ""

    source = BlockSource.OVERRIDE


@dataclass
class CustomBlock(Block):
    """Stored block created by an editor."""

    source = BlockSource.CUSTOM


StoredBlock = Union[OverrideBlock, CustomBlock]


def effective_block(
    builtin: Optional[BuiltinBlock],
    stored: Optional[StoredBlock],
) -> Optional[Block]:
    """Pick the block a reader should see for one slug.

    An override beats its builtin; a custom block stands alone; a builtin
    without override is returned as-is.
    """
    if isinstance(stored, OverrideBlock):
        return stored
    if isinstance(stored, CustomBlock):
        return stored
    return builtin


def block_to_dict(block: Block) -> Dict:
    """Serialize a block for API responses."""
    data = {
        "id": block.id,
        "slug": block.slug,
        "name": block.name,
        "description": block.description,
        "content": block.content,
        "source": block.source.value,
        "tier": block.tier,
        "categories": list(block.categories),
        "variants": dict(block.variants),
        "version": block.version,
        "tokens": block.tokens,
        "updated_at": block.updated_at.isoformat() if block.updated_at else None,
    }
    if isinstance(block, OverrideBlock):
        data["overrides_slug"] = block.overrides_slug
    return data
