"""Builtin prompt catalog.

File loader for the blocks and compositions seeded at deployment.

Directory structure:
    prompts/
    ├── catalog.yaml           # block metadata, compositions, aliases
    └── blocks/
        ├── <slug>.prompt      # default content
        └── variants/
            └── <context>/
                └── <slug>.prompt
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.exceptions import ConfigurationError
from ..domain import BlockReference, BuiltinBlock, Composition, CompositionCatalog
from ..domain.block import BLOCK_TIERS

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).parent
CATALOG_FILE = "catalog.yaml"
BUILTIN_ID_PREFIX = "builtin-"
LIBRARY_CONTEXT_PREFIX = "library-context-"
CUSTOMER_SKILL_CONTEXT_SLUG = "customer_skill_context"


def builtin_id(slug: str) -> str:
    return f"{BUILTIN_ID_PREFIX}{slug}"


def library_context_slug(library_id: str) -> str:
    return f"{LIBRARY_CONTEXT_PREFIX}{library_id}"


class PromptCatalog:
    """Read-only catalog of builtin blocks and compositions.

    Prompt content is looked up in this order:
    1. blocks/variants/{context}/{slug}.prompt (if context specified)
    2. blocks/{slug}.prompt (fallback/default)

    Example:
        catalog = PromptCatalog(Path("prompts"))
        block = catalog.builtins["role"]
        text = catalog.get_prompt("role", context="chat")
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Load the catalog.

        Args:
            prompts_dir: Directory holding catalog.yaml and blocks/.
                Defaults to the packaged prompts directory.

        Raises:
            ConfigurationError: If the catalog is missing or inconsistent.
        """
        self._prompts_dir = Path(prompts_dir) if prompts_dir else DEFAULT_PROMPTS_DIR
        self._cache: Dict[str, str] = {}

        self.variant_contexts: List[str] = []
        self.libraries: List[str] = []
        self.builtins: Dict[str, BuiltinBlock] = {}
        self.compositions: CompositionCatalog = CompositionCatalog([])

        self._load()
        logger.info(
            f"PromptCatalog loaded from {self._prompts_dir}: "
            f"{len(self.builtins)} blocks, {len(self.compositions)} compositions"
        )

    @property
    def blocks_dir(self) -> Path:
        return self._prompts_dir / "blocks"

    def _read_manifest(self) -> Dict[str, Any]:
        path = self._prompts_dir / CATALOG_FILE
        if not path.exists():
            raise ConfigurationError(f"Prompt catalog not found: {path}")

        try:
            with open(path) as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    def _load(self):
        """Build the catalog into locals and swap it in only once all of it loaded."""
        manifest = self._read_manifest()

        variant_contexts = list(manifest.get("variant_contexts", []))
        libraries = list(manifest.get("libraries", []))

        builtins: Dict[str, BuiltinBlock] = {}
        for entry in manifest.get("blocks", []):
            slug = entry.get("slug")
            if not slug:
                raise ConfigurationError(f"Block entry without slug: {entry}")
            if slug in builtins:
                raise ConfigurationError(f"Duplicate builtin slug: {slug}")

            tier = entry.get("tier", 3)
            if tier not in BLOCK_TIERS:
                raise ConfigurationError(f"Block '{slug}' has invalid tier {tier}")

            builtins[slug] = BuiltinBlock(
                id=builtin_id(slug),
                slug=slug,
                name=entry.get("name", slug),
                description=entry.get("description", ""),
                content=self.get_prompt(slug),
                categories=list(entry.get("categories", [])),
                tier=tier,
                variants=self._load_variants(slug, variant_contexts),
            )

        compositions = []
        for entry in manifest.get("compositions", []):
            if not entry.get("id"):
                raise ConfigurationError(f"Composition entry without id: {entry}")
            references = [
                self._parse_reference(ref, variant_contexts) for ref in entry.get("blocks", [])
            ]
            compositions.append(Composition(
                composition_id=entry["id"],
                name=entry.get("name", entry["id"]),
                description=entry.get("description", ""),
                category=entry.get("category", "utility"),
                layout=entry.get("layout", "plain"),
                output_format=entry.get("output_format", "text"),
                output_schema=entry.get("output_schema"),
                references=references,
            ))
        catalog = CompositionCatalog(compositions, manifest.get("aliases", {}))

        self.variant_contexts = variant_contexts
        self.libraries = libraries
        self.builtins = builtins
        self.compositions = catalog

    def _parse_reference(self, raw: Any, variant_contexts: List[str]) -> BlockReference:
        if isinstance(raw, str):
            return BlockReference(slug=raw)
        if isinstance(raw, dict) and raw.get("slug"):
            variant = raw.get("variant")
            if variant and variant not in variant_contexts:
                raise ConfigurationError(
                    f"Reference to '{raw['slug']}' uses unknown variant '{variant}'"
                )
            return BlockReference(slug=raw["slug"], variant=variant)
        raise ConfigurationError(f"Invalid block reference: {raw!r}")

    def _load_variants(self, slug: str, variant_contexts: List[str]) -> Dict[str, str]:
        variants = {}
        for context in variant_contexts:
            path = self.blocks_dir / "variants" / context / f"{slug}.prompt"
            if path.exists():
                variants[context] = self.get_prompt(slug, context=context)
        return variants

    def get_prompt(self, slug: str, context: Optional[str] = None) -> str:
        """Load prompt content with variant fallback.

        Args:
            slug: Block slug (file name without extension).
            context: Optional variant context.

        Returns:
            Prompt content with trailing whitespace removed.

        Raises:
            ConfigurationError: If no content file exists.
        """
        if context:
            cache_key = f"variants/{context}/{slug}"
            if cache_key in self._cache:
                return self._cache[cache_key]

            variant_path = self.blocks_dir / "variants" / context / f"{slug}.prompt"
            if variant_path.exists():
                content = variant_path.read_text().rstrip()
                self._cache[cache_key] = content
                logger.debug(f"Loaded prompt variant: {cache_key}")
                return content

        cache_key = slug
        if cache_key in self._cache:
            return self._cache[cache_key]

        default_path = self.blocks_dir / f"{slug}.prompt"
        if default_path.exists():
            content = default_path.read_text().rstrip()
            self._cache[cache_key] = content
            logger.debug(f"Loaded prompt: {cache_key}")
            return content

        raise ConfigurationError(
            f"Prompt content not found: slug='{slug}', context='{context}'. "
            f"Searched: {default_path}"
        )

    def list_prompts(self) -> List[str]:
        """List slugs that have a default content file."""
        if not self.blocks_dir.exists():
            return []
        return sorted(path.stem for path in self.blocks_dir.glob("*.prompt"))

    def list_variants(self, context: str) -> List[str]:
        """List slugs that define a variant for context."""
        variants_dir = self.blocks_dir / "variants" / context
        if not variants_dir.exists():
            return []
        return sorted(path.stem for path in variants_dir.glob("*.prompt"))

    def is_builtin(self, slug: str) -> bool:
        return slug in self.builtins

    def reload(self):
        """Re-read the catalog from disk.

        A catalog that fails to load leaves the current one in place.
        BlockStore and CompositionResolver copy what they need at
        construction, so services built from this catalog keep the old
        builtins until they are rebuilt (container.reset_singletons()).

        Raises:
            ConfigurationError: If the new catalog is missing or inconsistent.
        """
        previous_cache = self._cache
        self._cache = {}
        try:
            self._load()
        except Exception:
            self._cache = previous_cache
            raise
        logger.info("Prompt catalog reloaded")
