"""
Execution API Format

One-way conversion of a graph into the flat prompt submitted to the
execution backend:

    {
        "3": {"class_type": "KSampler", "inputs": {"model": ["1", 0], "seed": 42}},
        ...
    }

Only nodes feeding an output node are included, in execution order.
"""

from typing import Any, Dict, Optional
import json
import logging

from ..dag.definition import NodeDefinition
from ..dag.graph import Graph
from ..dag.node import Node
from ..dag.registry import DefinitionLookup
from ..dag.sorter import get_execution_order

logger = logging.getLogger(__name__)


class CyclicGraphError(RuntimeError):
    """Raised when a prompt is requested for a graph whose execution subgraph has a cycle"""

    def __init__(self, node_ids):
        self.node_ids = list(node_ids)
        super().__init__(
            f"Cannot build prompt: graph contains a cycle involving nodes {self.node_ids}"
        )


class ApiPromptSerializer:
    """
    Builds execution prompts from workflow graphs.

    Example usage:
        serializer = ApiPromptSerializer(registry)
        prompt = serializer.to_prompt(graph)
        request = serializer.to_api_request(graph, client_id="editor-1")
    """

    def __init__(self, registry: Optional[DefinitionLookup] = None):
        self.registry = registry

    def to_prompt(self, graph: Graph) -> Dict[str, Dict[str, Any]]:
        """
        Build the prompt map keyed by node id.

        Raises:
            CyclicGraphError: If the execution subgraph cannot be ordered
        """
        result = get_execution_order(graph)
        if result.has_cycle:
            raise CyclicGraphError(node.id for node in result.cycle_nodes)

        prompt: Dict[str, Dict[str, Any]] = {}
        for node in result.ordered_nodes:
            prompt[node.id] = self._node_entry(node, graph)

        logger.debug(f"Built prompt with {len(prompt)} of {graph.node_count} nodes")
        return prompt

    def to_api_request(
        self,
        graph: Graph,
        client_id: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Prompt wrapped for submission to the backend queue"""
        request: Dict[str, Any] = {"prompt": self.to_prompt(graph)}
        if client_id is not None:
            request["client_id"] = client_id
        if extra_data:
            request["extra_data"] = extra_data
        return request

    def to_json(self, graph: Graph, client_id: Optional[str] = None, pretty: bool = False) -> str:
        return json.dumps(self.to_api_request(graph, client_id=client_id), indent=2 if pretty else None)

    def _definition(self, graph: Graph, node: Node) -> Optional[NodeDefinition]:
        registry = self.registry if self.registry is not None else graph.registry
        return registry.get(node.type) if registry is not None else None

    def _node_entry(self, node: Node, graph: Graph) -> Dict[str, Any]:
        definition = self._definition(graph, node)
        inputs: Dict[str, Any] = {}

        for edge in sorted(graph.get_incoming_edges(node.id), key=lambda e: e.target_slot):
            name = f"input_{edge.target_slot}"
            if definition is not None and edge.target_slot < len(definition.inputs):
                name = definition.inputs[edge.target_slot].name or name
            inputs[name] = [edge.source_node_id, edge.source_slot]

        if definition is None:
            for name, value in node.widget_values.items():
                inputs.setdefault(name, value)
        else:
            for widget in definition.widgets:
                value = node.widget_values.get(widget.name)
                if value is None:
                    value = widget.default
                if value is not None:
                    inputs.setdefault(widget.name, value)

        entry: Dict[str, Any] = {"class_type": node.type, "inputs": inputs}
        if node.is_bypassed:
            entry["_meta"] = {"bypass": True}
        return entry
