"""
Node Registry

Lookup table of available node types. Graphs, validators and serializers
resolve a node's `type` name against an injected registry at use time.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol
import logging

from .definition import NodeDefinition

logger = logging.getLogger(__name__)


class DefinitionLookup(Protocol):
    """
    Capability the graph engine needs from a registry.

    Anything with a `get(name)` returning a NodeDefinition (or None for
    unknown types) can back a Graph, so tests can pass a plain dict wrapper
    and several registries can coexist.
    """

    def get(self, name: str) -> Optional[NodeDefinition]:
        ...


class NodeRegistry:
    """
    Registry of available node definitions.

    Example usage:
        registry = NodeRegistry()
        registry.register(NodeDefinition(
            name="VAEDecode",
            category="latent",
            inputs=[SlotSpec("samples", SlotType.LATENT), SlotSpec("vae", SlotType.VAE)],
            outputs=[SlotSpec("IMAGE", SlotType.IMAGE)],
        ))

        definition = registry.get("VAEDecode")
        matches = registry.search("vae")
    """

    def __init__(self, definitions: Optional[Iterable[NodeDefinition]] = None):
        """Initialize registry, optionally with a first batch of definitions"""
        self._definitions: Dict[str, NodeDefinition] = {}
        self._categories: Dict[str, List[str]] = {}
        if definitions is not None:
            self.register_all(definitions)
        logger.debug("Initialized NodeRegistry")

    def register(self, definition: NodeDefinition) -> None:
        """
        Register a node definition.

        Args:
            definition: Definition keyed by its name

        Re-registering a name replaces the previous definition.
        """
        previous = self._definitions.get(definition.name)
        if previous is not None:
            logger.warning(f"Overwriting existing registration for node type: {definition.name}")
            names = self._categories.get(previous.category, [])
            if definition.name in names:
                names.remove(definition.name)
            if not names:
                self._categories.pop(previous.category, None)

        self._definitions[definition.name] = definition
        self._categories.setdefault(definition.category, []).append(definition.name)
        logger.debug(f"Registered node type: {definition.name}")

    def register_all(self, definitions: Iterable[NodeDefinition]) -> None:
        count = 0
        for definition in definitions:
            self.register(definition)
            count += 1
        logger.info(f"Registered {count} node types")

    def get(self, name: str) -> Optional[NodeDefinition]:
        return self._definitions.get(name)

    def has(self, name: str) -> bool:
        return name in self._definitions

    def list_types(self) -> List[str]:
        return list(self._definitions.keys())

    @property
    def definitions(self) -> List[NodeDefinition]:
        return list(self._definitions.values())

    @property
    def categories(self) -> List[str]:
        return sorted(self._categories.keys())

    def get_by_category(self, category: str) -> List[NodeDefinition]:
        return [self._definitions[name] for name in self._categories.get(category, [])]

    def get_by_category_prefix(self, prefix: str) -> List[NodeDefinition]:
        return [d for d in self._definitions.values() if d.category.startswith(prefix)]

    def search(self, query: str) -> List[NodeDefinition]:
        """
        Search definitions by name or display name.

        Ranking: exact match, then prefix match, then substring, then a fuzzy
        match where every query character appears in order. Ties are broken
        alphabetically by display name.

        Args:
            query: Case-insensitive search text; empty returns everything

        Returns:
            Matching definitions, best first
        """
        if not query:
            return self.definitions

        needle = query.lower()
        scored = []
        for definition in self._definitions.values():
            score = max(
                _match_score(definition.name.lower(), needle),
                _match_score(definition.display_name.lower(), needle),
            )
            if score:
                scored.append((score, definition))

        scored.sort(key=lambda item: (-item[0], item[1].display_name))
        return [definition for _, definition in scored]

    def load_object_info(self, object_info: Dict[str, Any]) -> int:
        """
        Register every definition from a backend object_info response.

        Entries that fail to parse are skipped and logged.

        Returns:
            Number of definitions registered
        """
        loaded = 0
        for name, data in object_info.items():
            try:
                definition = NodeDefinition.from_object_info(name, data)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Failed to parse node definition {name}: {e}")
                continue
            self.register(definition)
            loaded += 1

        logger.info(f"Loaded {loaded} of {len(object_info)} node definitions from object_info")
        return loaded

    def clear(self) -> None:
        self._definitions.clear()
        self._categories.clear()

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __repr__(self) -> str:
        return f"NodeRegistry({len(self._definitions)} nodes)"


def _match_score(text: str, needle: str) -> int:
    if text == needle:
        return 100
    if text.startswith(needle):
        return 80
    if needle in text:
        return 50
    if _fuzzy_match(text, needle):
        return 30
    return 0


def _fuzzy_match(text: str, needle: str) -> bool:
    """All needle characters appear in text, in order"""
    remaining = iter(text)
    return all(char in remaining for char in needle)
