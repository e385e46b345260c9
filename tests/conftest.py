"""Shared fixtures: a small registry covering every slot shape the engine handles."""

import pytest

from flowgraph.dag.graph import Graph
from flowgraph.dag.registry import NodeRegistry
from flowgraph.dag.reroute import reroute_definition

OBJECT_INFO = {
    "A": {
        "category": "test",
        "output": ["MODEL"],
        "output_name": ["MODEL"],
    },
    "B": {
        "category": "test",
        "input": {"required": {"model": "MODEL"}},
        "output": ["LATENT"],
        "output_name": ["LATENT"],
    },
    "C": {
        "category": "test/output",
        "input": {"required": {"latent": "LATENT"}},
        "output_node": True,
    },
    "Passthrough": {
        "category": "test",
        "input": {"required": {"latent": "LATENT"}},
        "output": ["LATENT"],
        "output_name": ["LATENT"],
    },
    "Encode": {
        "category": "conditioning",
        "input": {"required": {"cond": "CONDITIONING"}},
        "output": ["CONDITIONING"],
        "output_name": ["CONDITIONING"],
    },
    "Sampler": {
        "display_name": "Test Sampler",
        "category": "sampling",
        "input": {
            "required": {
                "model": "MODEL",
                "seed": ["INT", {"default": 0, "min": 0}],
                "steps": ["INT", {"default": 20, "min": 1, "max": 100}],
                "cfg": ["FLOAT", {"default": 7.5, "min": 0.0, "max": 30.0}],
                "sampler_name": [["euler", "heun"]],
                "latent": "LATENT",
            },
            "optional": {"positive": "CONDITIONING"},
        },
        "output": ["LATENT"],
        "output_name": ["LATENT"],
    },
    "Legacy": {
        "category": "test",
        "deprecated": True,
        "output": ["IMAGE"],
        "output_name": ["IMAGE"],
    },
    "Preview": {
        "category": "test/output",
        "experimental": True,
        "input": {"required": {"image": "IMAGE"}},
        "output_node": True,
    },
}


@pytest.fixture
def registry():
    registry = NodeRegistry()
    registry.load_object_info(OBJECT_INFO)
    registry.register(reroute_definition())
    return registry


@pytest.fixture
def graph(registry):
    return Graph(registry=registry)


@pytest.fixture
def chain(graph):
    """A -> B -> C, returned as (graph, a, b, c)"""
    a = graph.add_node_by_type("A", (0, 0))
    b = graph.add_node_by_type("B", (250, 0))
    c = graph.add_node_by_type("C", (500, 0))
    graph.connect(a.id, 0, b.id, 0)
    graph.connect(b.id, 0, c.id, 0)
    return graph, a, b, c
