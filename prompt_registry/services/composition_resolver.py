"""Composition resolver: turns a composition id into ordered block contents."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.exceptions import CompositionResolutionError
from ..domain import Composition, CompositionCatalog, estimate_tokens
from .block_store import BlockStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedBlock:
    """One block of a resolved composition, with the content actually used."""
    slug: str
    content: str
    block_id: str
    name: str
    variant: Optional[str] = None

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.content)

    def to_dict(self) -> Dict:
        return {
            "slug": self.slug,
            "content": self.content,
            "block_id": self.block_id,
            "name": self.name,
            "variant": self.variant,
        }


@dataclass(frozen=True)
class ResolvedComposition:
    composition_id: str
    blocks: List[ResolvedBlock] = field(default_factory=list)

    @property
    def block_ids(self) -> List[str]:
        return [block.block_id for block in self.blocks]


class CompositionResolver:
    """
    Resolves compositions against the block store.

    Only reads blocks. The alias table comes in with the catalog; nothing
    about compositions is looked up from module state.

    Example:
        resolver = CompositionResolver(block_store, catalog.compositions, default_timeout=5.0)
        resolved = await resolver.resolve("questions")  # alias of rfp_single
        resolved.block_ids
    """

    def __init__(
        self,
        block_store: BlockStore,
        catalog: CompositionCatalog,
        default_timeout: Optional[float] = None,
    ):
        """
        Initialize resolver.

        Args:
            block_store: Source of effective blocks.
            catalog: Compositions and legacy aliases.
            default_timeout: Seconds allowed per resolution (None = no limit).
        """
        self.block_store = block_store
        self.catalog = catalog
        self.default_timeout = default_timeout

    def list_compositions(self) -> List[Composition]:
        return self.catalog.list()

    def get_composition(self, name: str) -> Composition:
        """Look up a composition by id or alias (raises CompositionNotFoundError)."""
        return self.catalog.get(name)

    async def resolve(self, composition_id: str, timeout: Optional[float] = None) -> ResolvedComposition:
        """
        Resolve a composition to its ordered blocks.

        Args:
            composition_id: Composition id or legacy alias.
            timeout: Seconds allowed (defaults to default_timeout).

        Returns:
            ResolvedComposition with the canonical id.

        Raises:
            NotFoundError: If the name is neither an id nor an alias.
            CompositionResolutionError: If any referenced block is missing.
            asyncio.TimeoutError: If resolution takes longer than timeout.
        """
        composition = self.catalog.get(composition_id)
        limit = timeout if timeout is not None else self.default_timeout

        if limit is None:
            return await self._resolve(composition)

        try:
            return await asyncio.wait_for(self._resolve(composition), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"Resolving '{composition.composition_id}' timed out after {limit}s")
            raise

    async def _resolve(self, composition: Composition) -> ResolvedComposition:
        blocks = await self.block_store.get_effective_blocks(composition.slugs)

        resolved = []
        for ref in composition.references:
            block = blocks.get(ref.slug)
            if block is None:
                logger.error(
                    f"Composition '{composition.composition_id}' references missing block '{ref.slug}'"
                )
                raise CompositionResolutionError(composition.composition_id, ref.slug)

            variant = ref.variant if block.has_variant(ref.variant) else None
            resolved.append(ResolvedBlock(
                slug=block.slug,
                content=block.content_for(variant),
                block_id=block.id,
                name=block.name,
                variant=variant,
            ))

        logger.debug(f"Resolved '{composition.composition_id}' to {len(resolved)} blocks")
        return ResolvedComposition(composition_id=composition.composition_id, blocks=resolved)

    async def token_breakdown(self, composition_id: str, timeout: Optional[float] = None) -> Dict:
        """Estimated tokens per block of a resolved composition."""
        resolved = await self.resolve(composition_id, timeout=timeout)
        blocks = [
            {"slug": block.slug, "name": block.name, "variant": block.variant, "tokens": block.tokens}
            for block in resolved.blocks
        ]
        return {
            "composition_id": resolved.composition_id,
            "blocks": blocks,
            "total_tokens": sum(entry["tokens"] for entry in blocks),
        }
