"""
Graph Validator

Read-only checks producing severity-tagged diagnostics for a workflow graph,
plus a pre-connection check that mirrors `Graph.connect`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import logging

from ..dag.graph import Graph
from ..dag.node import Node
from ..dag.registry import DefinitionLookup
from ..dag.sorter import ancestor_closure, topological_sort
from .widgets import check_widget_value

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    ERROR = "error"      # blocks execution
    WARNING = "warning"  # allowed, may misbehave
    INFO = "info"


@dataclass(frozen=True)
class ValidationIssue:
    """A single diagnostic, optionally pointing at a node, slot or widget"""
    severity: Severity
    message: str
    node_id: Optional[str] = None
    slot_index: Optional[int] = None
    widget_name: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    def __str__(self) -> str:
        location = []
        if self.node_id is not None:
            location.append(f"node: {self.node_id}")
        if self.slot_index is not None:
            location.append(f"slot: {self.slot_index}")
        if self.widget_name is not None:
            location.append(f"widget: {self.widget_name}")

        text = f"{self.severity.value.upper()}: {self.message}"
        if location:
            text += f" ({', '.join(location)})"
        return text


@dataclass
class ValidationResult:
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(issue.is_error for issue in self.issues)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.WARNING]

    @property
    def infos(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity is Severity.INFO]

    def __add__(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(self.issues + other.issues)

    def __str__(self) -> str:
        if not self.issues:
            return "ValidationResult: valid"
        return f"ValidationResult: {len(self.errors)} errors, {len(self.warnings)} warnings"


class GraphValidator:
    """
    Validates workflow graphs against a node registry.

    Checks performed:
    1. Empty graph (warning, stops here)
    2. Per node: unknown type, deprecated/experimental flags, required
       inputs connected, widget values (only with strict_widgets)
    3. Graph-wide: cycles, missing output nodes, nodes that cannot reach
       any output

    Example usage:
        validator = GraphValidator(registry)
        result = validator.validate(graph)
        if not result.is_valid:
            for issue in result.errors:
                print(issue)
    """

    def __init__(self, registry: DefinitionLookup, strict_widgets: bool = False):
        """
        Args:
            registry: Definitions used to resolve node types
            strict_widgets: Also check widget values against their bounds
                and options
        """
        self.registry = registry
        self.strict_widgets = strict_widgets

    def validate(self, graph: Graph) -> ValidationResult:
        issues: List[ValidationIssue] = []

        if graph.node_count == 0:
            issues.append(ValidationIssue(Severity.WARNING, "Graph is empty"))
            return ValidationResult(issues)

        for node in graph.nodes:
            issues.extend(self._validate_node(node, graph))

        sort_result = topological_sort(graph)
        if sort_result.has_cycle:
            issues.append(ValidationIssue(
                Severity.ERROR,
                f"Graph contains cycles involving {len(sort_result.cycle_nodes)} nodes",
            ))
            for node in sort_result.cycle_nodes:
                issues.append(ValidationIssue(
                    Severity.ERROR,
                    f'Node "{node.title}" is part of a cycle',
                    node_id=node.id,
                ))

        output_nodes = [node for node in graph.nodes if self._is_output(node)]
        if not output_nodes:
            issues.append(ValidationIssue(
                Severity.WARNING,
                "No output nodes found - nothing will be executed",
            ))

        reachable = ancestor_closure(graph, [node.id for node in output_nodes])
        for node in graph.nodes:
            if node.id not in reachable:
                issues.append(ValidationIssue(
                    Severity.INFO,
                    f'Node "{node.title}" is not connected to any output',
                    node_id=node.id,
                ))

        result = ValidationResult(issues)
        logger.info(
            f"Validated graph with {graph.node_count} nodes: "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings, "
            f"{len(result.infos)} infos"
        )
        return result

    def can_execute(self, graph: Graph) -> bool:
        return self.validate(graph).is_valid

    def _is_output(self, node: Node) -> bool:
        definition = self.registry.get(node.type)
        return definition is not None and definition.is_output_node

    def _validate_node(self, node: Node, graph: Graph) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        definition = self.registry.get(node.type)
        if definition is None:
            issues.append(ValidationIssue(
                Severity.ERROR,
                f"Unknown node type: {node.type}",
                node_id=node.id,
            ))
            return issues

        if definition.deprecated:
            issues.append(ValidationIssue(
                Severity.WARNING,
                f'Node "{node.title}" uses deprecated type {node.type}',
                node_id=node.id,
            ))
        if definition.experimental:
            issues.append(ValidationIssue(
                Severity.INFO,
                f'Node "{node.title}" uses experimental type {node.type}',
                node_id=node.id,
            ))

        incoming = graph.get_incoming_edges(node.id)
        for index, slot in enumerate(definition.inputs):
            if slot.optional:
                continue
            connected = sum(1 for edge in incoming if edge.target_slot == index)
            if connected != 1:
                issues.append(ValidationIssue(
                    Severity.ERROR,
                    f'Required input "{slot.name}" is not connected',
                    node_id=node.id,
                    slot_index=index,
                ))

        if self.strict_widgets:
            for widget in definition.widgets:
                problem = check_widget_value(widget, node.widget_values.get(widget.name))
                if problem:
                    issues.append(ValidationIssue(
                        Severity.ERROR,
                        f'Widget "{widget.name}": {problem}',
                        node_id=node.id,
                        widget_name=widget.name,
                    ))

        return issues


def validate_connection(
    graph: Graph,
    registry: DefinitionLookup,
    source_node_id: str,
    source_slot: int,
    target_node_id: str,
    target_slot: int,
) -> ValidationResult:
    """
    Check a prospective connection before calling `Graph.connect`.

    Flags everything `Graph.connect` would reject (missing node, unknown
    type, slot out of range, type mismatch) and additionally self-loops,
    which `connect` itself accepts.
    """
    issues: List[ValidationIssue] = []

    source = graph.get_node(source_node_id)
    if source is None:
        issues.append(ValidationIssue(Severity.ERROR, "Source node not found", node_id=source_node_id))
        return ValidationResult(issues)

    target = graph.get_node(target_node_id)
    if target is None:
        issues.append(ValidationIssue(Severity.ERROR, "Target node not found", node_id=target_node_id))
        return ValidationResult(issues)

    source_def = registry.get(source.type)
    target_def = registry.get(target.type)
    if source_def is None:
        issues.append(ValidationIssue(
            Severity.ERROR,
            f"Unknown source node type: {source.type}",
            node_id=source_node_id,
        ))
    if target_def is None:
        issues.append(ValidationIssue(
            Severity.ERROR,
            f"Unknown target node type: {target.type}",
            node_id=target_node_id,
        ))
    if issues:
        return ValidationResult(issues)

    if not 0 <= source_slot < len(source_def.outputs):
        issues.append(ValidationIssue(
            Severity.ERROR,
            f"Invalid output slot index: {source_slot}",
            node_id=source_node_id,
            slot_index=source_slot,
        ))
    if not 0 <= target_slot < len(target_def.inputs):
        issues.append(ValidationIssue(
            Severity.ERROR,
            f"Invalid input slot index: {target_slot}",
            node_id=target_node_id,
            slot_index=target_slot,
        ))
    if issues:
        return ValidationResult(issues)

    source_type = source_def.outputs[source_slot].type
    target_type = target_def.inputs[target_slot].type
    if not source_type.can_connect_to(target_type):
        issues.append(ValidationIssue(
            Severity.ERROR,
            f"Type mismatch: {source_type.value} cannot connect to {target_type.value}",
            node_id=target_node_id,
            slot_index=target_slot,
        ))

    if source_node_id == target_node_id:
        issues.append(ValidationIssue(
            Severity.ERROR,
            "Cannot connect a node to itself",
            node_id=source_node_id,
        ))

    return ValidationResult(issues)
