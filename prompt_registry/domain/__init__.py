"""Domain entities for the prompt registry."""
from .block import (
    Block,
    BlockSource,
    BuiltinBlock,
    CustomBlock,
    OverrideBlock,
    StoredBlock,
    block_to_dict,
    effective_block,
    estimate_tokens,
)
from .composition import (
    LAYOUTS,
    OUTPUT_FORMATS,
    BlockReference,
    Composition,
    CompositionCatalog,
)
from .revision import Revision, RevisionAction, line_diff

__all__ = [
    "Block",
    "BlockSource",
    "BuiltinBlock",
    "CustomBlock",
    "OverrideBlock",
    "StoredBlock",
    "block_to_dict",
    "effective_block",
    "estimate_tokens",
    "LAYOUTS",
    "OUTPUT_FORMATS",
    "BlockReference",
    "Composition",
    "CompositionCatalog",
    "Revision",
    "RevisionAction",
    "line_diff",
]
