"""
Catalog Loader

Loads node definition catalogs from YAML (or object_info JSON) files and
merges them into a registry.

A YAML catalog lists definitions under `nodes`, each in the backend
object_info shape:

    nodes:
      KSampler:
        display_name: K Sampler
        category: sampling
        input:
          required:
            model: MODEL
            seed: [INT, {default: 0, min: 0}]
        output: [LATENT]

A JSON catalog is a raw object_info dump (node name -> definition).
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..dag.definition import NodeDefinition
from ..dag.registry import NodeRegistry
from ..dag.reroute import REROUTE_TYPE, reroute_definition

logger = logging.getLogger(__name__)

CATALOG_PATTERNS = ("*.yaml", "*.yml", "*.json")


class CatalogError(ValueError):
    """A catalog file could not be read, validated or merged"""


class InputSections(BaseModel):
    model_config = ConfigDict(extra="ignore")

    required: Dict[str, Any] = Field(default_factory=dict)
    optional: Dict[str, Any] = Field(default_factory=dict)
    hidden: Dict[str, Any] = Field(default_factory=dict)


class NodeEntry(BaseModel):
    """One node definition in object_info shape"""
    model_config = ConfigDict(extra="allow")

    input: InputSections = Field(default_factory=InputSections)
    output: List[str] = Field(default_factory=list)
    output_name: List[str] = Field(default_factory=list)
    output_node: bool = False
    display_name: Optional[str] = None
    category: str = "uncategorized"
    description: Optional[str] = None
    deprecated: bool = False
    experimental: bool = False


class CatalogFile(BaseModel):
    """Complete catalog file"""
    model_config = ConfigDict(extra="ignore")

    nodes: Dict[str, NodeEntry] = Field(default_factory=dict)


class CatalogLoader:
    """
    Loads and merges node catalogs from a config directory.

    The loader:
    1. Finds all catalog files in `config_dir/nodes/`
    2. Loads and validates each file
    3. Merges definitions (identical duplicates are skipped, conflicting
       ones are an error)
    4. Converts entries to NodeDefinition objects

    Example usage:
        loader = CatalogLoader(Path("config"))
        registry = loader.load_registry()
    """

    def __init__(self, config_dir: Union[str, Path]):
        """
        Args:
            config_dir: Root config directory (contains nodes/ subdirectory)
        """
        self.config_dir = Path(config_dir)
        logger.info(f"Initialized CatalogLoader with config_dir: {self.config_dir}")

    @property
    def nodes_dir(self) -> Path:
        return self.config_dir / "nodes"

    def catalog_files(self) -> List[Path]:
        files = set()
        for pattern in CATALOG_PATTERNS:
            files.update(self.nodes_dir.glob(pattern))
        return sorted(files)

    def load_definitions(self) -> List[NodeDefinition]:
        """
        Load every catalog file and merge into a definition list.

        Returns:
            Definitions in file order, then declaration order

        Raises:
            CatalogError: If the directory is missing, a file fails to
                parse or validate, or two files define a node differently
        """
        if not self.nodes_dir.is_dir():
            raise CatalogError(
                f"No catalog directory found. Expected: {self.nodes_dir}"
            )

        files = self.catalog_files()
        if not files:
            raise CatalogError(f"No catalog files found in {self.nodes_dir}")

        logger.info(f"Loading {len(files)} catalog files")

        merged: Dict[str, NodeEntry] = {}
        sources: Dict[str, Path] = {}
        for path in files:
            catalog = self._load_file(path)
            for name, entry in catalog.nodes.items():
                if name in merged:
                    if merged[name] != entry:
                        raise CatalogError(
                            f"Conflicting definitions for node {name}: "
                            f"{sources[name].name} and {path.name}"
                        )
                    logger.debug(f"Node {name} already defined (identical), skipping")
                    continue
                merged[name] = entry
                sources[name] = path
            logger.debug(f"Loaded {path.name}: {len(catalog.nodes)} nodes")

        definitions = []
        for name, entry in merged.items():
            try:
                definitions.append(NodeDefinition.from_object_info(name, entry.model_dump()))
            except ValueError as e:
                raise CatalogError(f"Invalid definition for node {name} in {sources[name]}: {e}") from e

        logger.info(f"Loaded catalog: {len(definitions)} node definitions")
        return definitions

    def load_registry(self, registry: Optional[NodeRegistry] = None) -> NodeRegistry:
        """Populate a registry with the catalog plus the built-in Reroute type"""
        registry = registry if registry is not None else NodeRegistry()
        registry.register_all(self.load_definitions())
        if not registry.has(REROUTE_TYPE):
            registry.register(reroute_definition())
        return registry

    def _load_file(self, path: Path) -> CatalogFile:
        try:
            with open(path, encoding="utf-8") as f:
                if path.suffix == ".json":
                    raw = json.load(f)
                    # object_info dumps have no `nodes` wrapper
                    if isinstance(raw, dict) and "nodes" not in raw:
                        raw = {"nodes": raw}
                else:
                    raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {path}: {e}")
            raise CatalogError(f"Failed to load {path}: {e}") from e

        if raw is None:
            logger.warning(f"Catalog file {path.name} is empty")
            return CatalogFile()

        try:
            return CatalogFile.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Invalid catalog {path}: {e}")
            raise CatalogError(f"Invalid catalog {path}: {e}") from e
