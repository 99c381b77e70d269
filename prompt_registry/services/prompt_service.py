"""System prompt assembly for callers (chat, RFP, skills, bots)."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..domain import Block
from ..prompts.catalog import CUSTOMER_SKILL_CONTEXT_SLUG, library_context_slug
from .block_store import BlockStore
from .composition_resolver import CompositionResolver
from .prompt_assembler import append_section, assemble

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemPrompt:
    prompt: str
    composition_id: str
    block_ids: List[str] = field(default_factory=list)
    output_format: str = "text"

    def to_dict(self) -> Dict:
        return {
            "prompt": self.prompt,
            "composition_id": self.composition_id,
            "block_ids": list(self.block_ids),
            "output_format": self.output_format,
        }


class PromptService:
    """
    Builds the final system prompt for a composition.

    Resolution and assembly are delegated; this layer adds the sections a
    composition does not list itself, such as the output schema or the
    library context.
    """

    def __init__(
        self,
        resolver: CompositionResolver,
        block_store: BlockStore,
        libraries: Iterable[str],
    ):
        self.resolver = resolver
        self.block_store = block_store
        self.libraries = tuple(libraries)

    async def assemble_system_prompt(
        self,
        composition_id: str,
        library_id: Optional[str] = None,
        additional_context: Optional[str] = None,
        timeout: Optional[float] = None,
        is_customer_skill: bool = False,
    ) -> SystemPrompt:
        """
        Resolve and assemble a composition into a system prompt.

        Args:
            composition_id: Composition id or legacy alias.
            library_id: Library whose context block is appended.
            additional_context: Free text appended as its own section.
            timeout: Seconds allowed for resolution.
            is_customer_skill: Append the customer skill context section.

        Returns:
            SystemPrompt with the canonical composition id and the ids of
            every contributing block.

        Raises:
            ValidationError: If library_id is not a known library.
            NotFoundError: If the composition is unknown.
            CompositionResolutionError: If a referenced block is missing.
        """
        if library_id is not None and library_id not in self.libraries:
            raise ValidationError(
                f"Unknown library '{library_id}'. Available: {', '.join(self.libraries)}",
                field="library_id",
            )

        composition = self.resolver.get_composition(composition_id)
        resolved = await self.resolver.resolve(composition.composition_id, timeout=timeout)
        assembled = assemble(resolved.blocks, layout=composition.layout)

        prompt = assembled.prompt
        block_ids = list(assembled.block_ids)

        if composition.output_format == "json" and composition.output_schema:
            schema = f"```json\n{composition.output_schema.strip()}\n```"
            prompt = append_section(prompt, "Expected Output Schema", schema)

        if library_id is not None:
            # Libraries without a context block (e.g. "prompts") add nothing
            library_block = await self._context_block(library_context_slug(library_id))
            if library_block is not None:
                prompt = append_section(prompt, "Library Context", library_block.content)
                block_ids.append(library_block.id)

        if is_customer_skill:
            customer_block = await self._context_block(CUSTOMER_SKILL_CONTEXT_SLUG)
            if customer_block is not None:
                prompt = append_section(prompt, "Customer Skill Context", customer_block.content)
                block_ids.append(customer_block.id)

        if additional_context:
            prompt = append_section(prompt, "Additional Context", additional_context)

        logger.info(
            f"Assembled '{resolved.composition_id}' system prompt: "
            f"{len(block_ids)} blocks, {len(prompt)} chars"
        )
        return SystemPrompt(
            prompt=prompt,
            composition_id=resolved.composition_id,
            block_ids=block_ids,
            output_format=composition.output_format,
        )

    async def _context_block(self, slug: str) -> Optional[Block]:
        """Effective block for an appended section, or None if missing or blank."""
        try:
            block = await self.block_store.get_block(slug)
        except NotFoundError:
            logger.debug(f"No context block '{slug}'")
            return None
        return block if block.content.strip() else None
