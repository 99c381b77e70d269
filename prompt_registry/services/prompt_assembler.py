"""Prompt assembler: pure concatenation of resolved blocks."""
from dataclasses import dataclass, field
from typing import Iterable, List

from ..core.exceptions import ValidationError
from ..domain import LAYOUTS
from .composition_resolver import ResolvedBlock

DEFAULT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class AssembledPrompt:
    prompt: str
    block_ids: List[str] = field(default_factory=list)


def _render(block: ResolvedBlock, layout: str) -> str:
    if layout == "sectioned":
        return f"## {block.name}\n\n{block.content}"
    return block.content


def assemble(
    resolved_blocks: Iterable[ResolvedBlock],
    separator: str = DEFAULT_SEPARATOR,
    layout: str = "plain",
) -> AssembledPrompt:
    """
    Join resolved blocks into one prompt.

    Same blocks in, same prompt out. Blocks with blank content contribute
    nothing, not even a manifest entry.

    Args:
        resolved_blocks: Blocks in composition order.
        separator: Text placed between blocks.
        layout: "plain" joins content as-is; "sectioned" puts a
            "## <name>" heading above each block.

    Raises:
        ValidationError: If layout is unknown.
    """
    if layout not in LAYOUTS:
        raise ValidationError(f"Unknown layout '{layout}'", field="layout")

    parts = []
    block_ids = []
    for block in resolved_blocks:
        if not block.content or not block.content.strip():
            continue
        parts.append(_render(block, layout))
        block_ids.append(block.block_id)

    return AssembledPrompt(prompt=separator.join(parts), block_ids=block_ids)


def append_section(prompt: str, title: str, body: str, separator: str = DEFAULT_SEPARATOR) -> str:
    """Append a "## <title>" section; a blank body leaves the prompt unchanged."""
    if not body or not body.strip():
        return prompt
    section = f"## {title}\n\n{body.strip()}"
    return f"{prompt}{separator}{section}" if prompt else section
