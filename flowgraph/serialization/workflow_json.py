"""
Workflow JSON

Round-trip serialization of graphs to and from the persisted editor
format: node layout, a link table, groups, and free-form `extra`
metadata under a version marker.

Node and link ids travel as integers. How graph ids are projected onto
wire integers is an explicit policy (WireIdPolicy).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import json
import logging
import zlib

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..dag.graph import Graph
from ..dag.node import DEFAULT_GROUP_COLOR, Edge, Group, Node, NodeMode
from ..dag.registry import DefinitionLookup

logger = logging.getLogger(__name__)

WORKFLOW_VERSION = 0.4

_NODE_MODES = {mode.value for mode in NodeMode}


class WorkflowFormatError(ValueError):
    """Persisted workflow could not be parsed; `location` names the offending part"""

    def __init__(self, message: str, location: str = "workflow"):
        super().__init__(f"{location}: {message}")
        self.location = location
        self.reason = message


class WireIdPolicy(Enum):
    """
    How string ids are projected onto the integer ids of the wire format.

    SEQUENTIAL: canonical decimal ids ("7", not "07") keep their value; other
        ids get fresh integers above the largest numeric id. Never collides.
    HASH: canonical decimal ids keep their value; other ids use a CRC32 hash
        of the id string. Stable across runs but two ids may collide.
    """
    SEQUENTIAL = "sequential"
    HASH = "hash"


class WireIdMap:
    """Projection of one id namespace (nodes or links) onto wire integers"""

    def __init__(self, ids: Iterable[str], policy: WireIdPolicy = WireIdPolicy.SEQUENTIAL):
        self._map: Dict[str, int] = {}
        pending: List[str] = []

        used = set()
        for item in ids:
            numeric = _as_int(item)
            if numeric is not None and numeric not in used:
                self._map[item] = numeric
                used.add(numeric)
            else:
                pending.append(item)

        if policy is WireIdPolicy.SEQUENTIAL:
            next_id = max(used, default=0) + 1
            for item in pending:
                while next_id in used:
                    next_id += 1
                self._map[item] = next_id
                used.add(next_id)
        else:
            for item in pending:
                self._map[item] = zlib.crc32(item.encode("utf-8")) & 0x7FFFFFFF

        if pending:
            logger.debug(f"Projected {len(pending)} non-numeric ids using {policy.value} policy")

    def __getitem__(self, item: str) -> int:
        return self._map[item]

    @property
    def max_id(self) -> int:
        return max(self._map.values(), default=0)


def _as_int(value: str) -> Optional[int]:
    """Integer for a canonical decimal id; None for "07", " 7", "1_0" and the like"""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if str(number) == value else None


@dataclass
class WorkflowMetadata:
    """Descriptive metadata stored in the workflow's `extra` bag"""
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    version: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Only the fields that are set"""
        data: Dict[str, Any] = {}
        for key in ("title", "description", "author", "version"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.tags:
            data["tags"] = list(self.tags)
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        if self.modified_at is not None:
            data["modified_at"] = self.modified_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "WorkflowMetadata":
        return cls(
            title=data.get("title"),
            description=data.get("description"),
            author=data.get("author"),
            version=data.get("version") if isinstance(data.get("version"), str) else None,
            tags=[str(tag) for tag in data.get("tags") or []],
            created_at=_parse_timestamp(data.get("created_at")),
            modified_at=_parse_timestamp(data.get("modified_at")),
        )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# ----------------------------------------------------------------------
# Wire records
# ----------------------------------------------------------------------


class NodeRecord(BaseModel):
    """One entry of the `nodes` array"""
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str
    pos: Tuple[float, float] = (0.0, 0.0)
    size: Tuple[float, float] = (200.0, 100.0)
    flags: Dict[str, Any] = Field(default_factory=dict)
    order: int = 0
    mode: NodeMode = NodeMode.NORMAL
    title: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    widgets_values: Union[List[Any], Dict[str, Any]] = Field(default_factory=list)
    color: Optional[str] = None
    bgcolor: Optional[str] = None

    @field_validator("pos", "size", mode="before")
    @classmethod
    def _pair_from_mapping(cls, value: Any) -> Any:
        # Older editors store pairs as {"0": x, "1": y}
        if isinstance(value, dict):
            return (value.get("0", 0.0), value.get("1", 0.0))
        return value

    @field_validator("flags", "properties", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("mode", mode="before")
    @classmethod
    def _unknown_mode_to_normal(cls, value: Any) -> Any:
        # Editors define modes this engine does not run (3 is on-trigger)
        if isinstance(value, int) and not isinstance(value, bool) and value not in _NODE_MODES:
            logger.warning(f"Unsupported node mode {value}; loading as NORMAL")
            return NodeMode.NORMAL
        return value


class LinkRecord(BaseModel):
    """One entry of the `links` table"""
    model_config = ConfigDict(extra="ignore")

    id: int
    origin_id: int
    origin_slot: int
    target_id: int
    target_slot: int
    type: Optional[str] = None

    @classmethod
    def parse(cls, raw: Any) -> "LinkRecord":
        """Accept both the tuple form [id, src, src_slot, dst, dst_slot, type?] and the object form"""
        if isinstance(raw, (list, tuple)):
            if len(raw) < 5:
                raise ValueError(f"expected 5 or 6 elements, got {len(raw)}")
            keys = ("id", "origin_id", "origin_slot", "target_id", "target_slot", "type")
            return cls.model_validate(dict(zip(keys, raw)))
        return cls.model_validate(raw)


class GroupRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "Group"
    bounding: Tuple[float, float, float, float] = (0.0, 0.0, 100.0, 100.0)
    color: Optional[str] = None
    font_size: float = 24.0
    locked: bool = False


class WorkflowDocument(BaseModel):
    """Top level of a persisted workflow; unknown keys are ignored"""
    model_config = ConfigDict(extra="ignore")

    nodes: List[NodeRecord] = Field(default_factory=list)
    links: List[Any] = Field(default_factory=list)
    groups: List[GroupRecord] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)
    version: Optional[float] = None

    @field_validator("nodes", "links", "groups", mode="before")
    @classmethod
    def _null_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("extra", mode="before")
    @classmethod
    def _null_to_dict(cls, value: Any) -> Any:
        return {} if value is None else value


def _format_location(loc: Tuple[Any, ...], prefix: str = "") -> str:
    text = prefix
    for part in loc:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else str(part)
    return text or "workflow"


def _format_error(error: ValidationError, prefix: str = "") -> WorkflowFormatError:
    first = error.errors()[0]
    return WorkflowFormatError(first.get("msg", str(error)), _format_location(first.get("loc", ()), prefix))


# ----------------------------------------------------------------------
# Serializer
# ----------------------------------------------------------------------


class WorkflowSerializer:
    """
    Serializes a graph to the persisted workflow format.

    Example usage:
        serializer = WorkflowSerializer(registry)
        data = serializer.to_dict(graph, metadata=WorkflowMetadata(title="Portrait"))
        text = serializer.to_json(graph, pretty=True)
    """

    def __init__(
        self,
        registry: Optional[DefinitionLookup] = None,
        id_policy: WireIdPolicy = WireIdPolicy.SEQUENTIAL,
    ):
        self.registry = registry
        self.id_policy = id_policy

    def to_dict(self, graph: Graph, metadata: Optional[WorkflowMetadata] = None) -> dict:
        node_ids = WireIdMap((node.id for node in graph.nodes), self.id_policy)
        link_ids = WireIdMap((edge.id for edge in graph.edges), self.id_policy)

        extra = dict(graph.extra)
        if metadata is not None:
            extra.update(metadata.to_dict())

        data = {
            "last_node_id": node_ids.max_id,
            "last_link_id": link_ids.max_id,
            "nodes": [self._node_to_dict(node, graph, node_ids, link_ids) for node in graph.nodes],
            "links": [self._edge_to_link(edge, node_ids, link_ids) for edge in graph.edges],
            "groups": [self._group_to_dict(group) for group in graph.groups],
            "config": {},
            "extra": extra,
            "version": WORKFLOW_VERSION,
        }
        logger.debug(
            f"Serialized workflow: {len(data['nodes'])} nodes, "
            f"{len(data['links'])} links, {len(data['groups'])} groups"
        )
        return data

    def to_json(self, graph: Graph, metadata: Optional[WorkflowMetadata] = None, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(graph, metadata), indent=2 if pretty else None)

    def _definition(self, graph: Graph, node: Node):
        registry = self.registry if self.registry is not None else graph.registry
        return registry.get(node.type) if registry is not None else None

    def _node_to_dict(self, node: Node, graph: Graph, node_ids: WireIdMap, link_ids: WireIdMap) -> dict:
        definition = self._definition(graph, node)

        inputs = []
        for edge in sorted(graph.get_incoming_edges(node.id), key=lambda e: e.target_slot):
            name = f"input_{edge.target_slot}"
            if definition is not None and edge.target_slot < len(definition.inputs):
                name = definition.inputs[edge.target_slot].name or name
            inputs.append({
                "name": name,
                "type": edge.type.value,
                "link": link_ids[edge.id],
                "slot_index": edge.target_slot,
            })

        links_by_slot: Dict[int, List[Edge]] = {}
        for edge in graph.get_outgoing_edges(node.id):
            links_by_slot.setdefault(edge.source_slot, []).append(edge)

        outputs = []
        slot_count = len(definition.outputs) if definition is not None else 0
        slot_count = max([slot_count] + [slot + 1 for slot in links_by_slot])
        for slot in range(slot_count):
            edges = links_by_slot.get(slot, [])
            if definition is not None and slot < len(definition.outputs):
                name, type_name = definition.outputs[slot].name, definition.outputs[slot].type.value
            else:
                name, type_name = f"output_{slot}", edges[0].type.value if edges else "*"
            outputs.append({
                "name": name,
                "type": type_name,
                "links": [link_ids[e.id] for e in edges],
                "slot_index": slot,
            })

        flags = {}
        if node.collapsed:
            flags["collapsed"] = True
        if node.pinned:
            flags["pinned"] = True

        data = {
            "id": node_ids[node.id],
            "type": node.type,
            "pos": list(node.position),
            "size": list(node.size),
            "flags": flags,
            "order": node.order,
            "mode": int(node.mode),
            "inputs": inputs,
            "outputs": outputs,
            "properties": dict(node.properties),
            "widgets_values": self._widget_values(node, definition),
        }
        if node.title != node.type:
            data["title"] = node.title
        if node.color is not None:
            data["color"] = node.color
        if node.bgcolor is not None:
            data["bgcolor"] = node.bgcolor
        return data

    @staticmethod
    def _widget_values(node: Node, definition) -> Union[List[Any], Dict[str, Any]]:
        """
        Widget values, positional in definition order when the type is known.

        A loader recovers positional names from the definition, else as
        `widget_<i>`. When some stored name would not come back that way
        (unknown type, undeclared widget) the keyed form is written instead.
        """
        declared = definition.widget_names if definition is not None else []
        values = [
            node.widget_values.get(widget.name, widget.initial_value())
            for widget in (definition.widgets if definition is not None else [])
        ]
        extras = [(name, value) for name, value in node.widget_values.items() if name not in declared]

        if all(name == f"widget_{len(values) + i}" for i, (name, _) in enumerate(extras)):
            return values + [value for _, value in extras]

        keyed = dict(zip(declared, values))
        keyed.update(extras)
        return keyed

    @staticmethod
    def _edge_to_link(edge: Edge, node_ids: WireIdMap, link_ids: WireIdMap) -> list:
        return [
            link_ids[edge.id],
            node_ids[edge.source_node_id],
            edge.source_slot,
            node_ids[edge.target_node_id],
            edge.target_slot,
            edge.type.value,
        ]

    @staticmethod
    def _group_to_dict(group: Group) -> dict:
        return {
            "title": group.title,
            "bounding": list(group.bounds),
            "color": group.color,
            "font_size": group.font_size,
            "locked": group.locked,
        }


# ----------------------------------------------------------------------
# Deserializer
# ----------------------------------------------------------------------


class WorkflowDeserializer:
    """
    Parses the persisted workflow format into a graph.

    Malformed input raises WorkflowFormatError; nothing is dropped silently.
    Unknown keys are ignored and missing optional keys take their defaults.

    Example usage:
        graph = WorkflowDeserializer(registry).from_json(text)
    """

    def __init__(self, registry: Optional[DefinitionLookup] = None):
        self.registry = registry

    def from_json(self, text: str) -> Graph:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise WorkflowFormatError(f"invalid JSON: {e.msg} at line {e.lineno}") from e
        return self.from_dict(data)

    def from_dict(self, data: Any) -> Graph:
        """
        Build a graph from a parsed workflow document.

        Raises:
            WorkflowFormatError: If the document or any node, link or group is malformed
        """
        if not isinstance(data, dict):
            raise WorkflowFormatError(f"expected an object, got {type(data).__name__}")

        try:
            document = WorkflowDocument.model_validate(data)
        except ValidationError as e:
            raise _format_error(e) from e

        graph = Graph(registry=self.registry)

        for index, record in enumerate(document.nodes):
            node_id = str(record.id)
            if graph.has_node(node_id):
                raise WorkflowFormatError(f"duplicate node id {record.id}", f"nodes[{index}].id")
            graph.add_node(self._node_from_record(record))

        for index, raw in enumerate(document.links):
            self._restore_link(graph, index, raw)

        for record in document.groups:
            graph.add_group(Group(
                title=record.title,
                bounds=record.bounding,
                color=record.color or DEFAULT_GROUP_COLOR,
                font_size=record.font_size,
                locked=record.locked,
            ))

        graph.extra.update(document.extra)

        logger.info(
            f"Loaded workflow: {graph.node_count} nodes, "
            f"{graph.edge_count} edges, {len(graph.groups)} groups"
        )
        return graph

    @staticmethod
    def read_metadata(data: dict) -> WorkflowMetadata:
        extra = data.get("extra") if isinstance(data, dict) else None
        return WorkflowMetadata.from_dict(extra if isinstance(extra, dict) else {})

    def _node_from_record(self, record: NodeRecord) -> Node:
        return Node(
            id=str(record.id),
            type=record.type,
            title=record.title or record.type,
            position=record.pos,
            size=record.size,
            order=record.order,
            mode=record.mode,
            widget_values=self._widget_values(record),
            properties=dict(record.properties),
            collapsed=record.flags.get("collapsed") is True,
            pinned=record.flags.get("pinned") is True,
            color=record.color,
            bgcolor=record.bgcolor,
        )

    def _widget_values(self, record: NodeRecord) -> Dict[str, Any]:
        values = record.widgets_values
        if isinstance(values, dict):
            return dict(values)

        definition = self.registry.get(record.type) if self.registry is not None else None
        names = definition.widget_names if definition is not None else []

        mapped: Dict[str, Any] = {}
        for index, value in enumerate(values):
            name = names[index] if index < len(names) else f"widget_{index}"
            mapped[name] = value
        return mapped

    @staticmethod
    def _restore_link(graph: Graph, index: int, raw: Any) -> None:
        location = f"links[{index}]"
        try:
            link = LinkRecord.parse(raw)
        except ValidationError as e:
            raise _format_error(e, location) from e
        except ValueError as e:
            raise WorkflowFormatError(str(e), location) from e

        source_id, target_id = str(link.origin_id), str(link.target_id)
        for node_id in (source_id, target_id):
            if not graph.has_node(node_id):
                raise WorkflowFormatError(f"references unknown node {node_id}", location)

        if graph.get_input_edge(target_id, link.target_slot) is not None:
            raise WorkflowFormatError(
                f"input {target_id}:{link.target_slot} is already linked",
                location,
            )

        edge = graph.connect(source_id, link.origin_slot, target_id, link.target_slot)
        if edge is None:
            raise WorkflowFormatError(
                f"connection {source_id}:{link.origin_slot} -> {target_id}:{link.target_slot} "
                f"is invalid for the node definitions",
                location,
            )
