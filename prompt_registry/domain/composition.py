"""Composition domain entities."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core.exceptions import CompositionNotFoundError, ConfigurationError

LAYOUTS = ("plain", "sectioned")
OUTPUT_FORMATS = ("text", "markdown", "json")


@dataclass(frozen=True)
class BlockReference:
    """One entry in a composition: a block slug and an optional variant key."""
    slug: str
    variant: Optional[str] = None


@dataclass
class Composition:
    """Ordered recipe of block references for one use case."""
    composition_id: str
    name: str
    references: List[BlockReference]
    description: str = ""
    category: str = "utility"
    layout: str = "plain"
    output_format: str = "text"
    output_schema: Optional[str] = None

    @property
    def slugs(self) -> List[str]:
        return [ref.slug for ref in self.references]

    def to_dict(self) -> Dict:
        return {
            "composition_id": self.composition_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "layout": self.layout,
            "output_format": self.output_format,
            "output_schema": self.output_schema,
            "blocks": [
                {"slug": ref.slug, "variant": ref.variant} for ref in self.references
            ],
        }


class CompositionCatalog:
    """Compositions by id plus the legacy alias table.

    Built once from configuration and handed to the resolver; it is not a
    module-level registry.

    Example:
        catalog = CompositionCatalog(
            [Composition("rfp_single", "RFP", [BlockReference("role")])],
            aliases={"questions": "rfp_single"},
        )
        catalog.get("questions").composition_id  # "rfp_single"
    """

    def __init__(
        self,
        compositions: Iterable[Composition],
        aliases: Optional[Dict[str, str]] = None,
    ):
        self._compositions: Dict[str, Composition] = {}
        for composition in compositions:
            if composition.composition_id in self._compositions:
                raise ConfigurationError(
                    f"Duplicate composition id: {composition.composition_id}"
                )
            if composition.layout not in LAYOUTS:
                raise ConfigurationError(
                    f"Composition '{composition.composition_id}' has unknown layout "
                    f"'{composition.layout}'"
                )
            if composition.output_format not in OUTPUT_FORMATS:
                raise ConfigurationError(
                    f"Composition '{composition.composition_id}' has unknown output "
                    f"format '{composition.output_format}'"
                )
            self._compositions[composition.composition_id] = composition

        self._aliases: Dict[str, str] = dict(aliases or {})
        for alias, target in self._aliases.items():
            if alias in self._compositions:
                raise ConfigurationError(
                    f"Alias '{alias}' shadows a composition id"
                )
            if target not in self._compositions:
                raise ConfigurationError(
                    f"Alias '{alias}' points to unknown composition '{target}'"
                )

    def canonical_id(self, name: str) -> str:
        """Map a composition id or legacy alias to the canonical id."""
        if name in self._compositions:
            return name
        if name in self._aliases:
            return self._aliases[name]
        raise CompositionNotFoundError(name, self.recognized_names())

    def get(self, name: str) -> Composition:
        return self._compositions[self.canonical_id(name)]

    def recognized_names(self) -> List[str]:
        return sorted(set(self._compositions) | set(self._aliases))

    def list(self) -> List[Composition]:
        return list(self._compositions.values())

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def __contains__(self, name: str) -> bool:
        return name in self._compositions or name in self._aliases

    def __len__(self) -> int:
        return len(self._compositions)
