import json
from pathlib import Path

import pytest

from flowgraph.config.loader import CatalogLoader
from flowgraph.dag.graph import Graph
from flowgraph.runtime.main import main
from flowgraph.serialization.workflow_json import WorkflowSerializer

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config"


def text_to_image(registry):
    graph = Graph(registry=registry)
    ckpt = graph.add_node_by_type("CheckpointLoaderSimple")
    positive = graph.add_node_by_type("CLIPTextEncode")
    negative = graph.add_node_by_type("CLIPTextEncode")
    latent = graph.add_node_by_type("EmptyLatentImage")
    sampler = graph.add_node_by_type("KSampler")
    decode = graph.add_node_by_type("VAEDecode")
    save = graph.add_node_by_type("SaveImage")

    graph.update_widget_value(positive.id, "text", "a lighthouse at dusk")
    graph.update_widget_value(negative.id, "text", "blurry")
    graph.connect(ckpt.id, 1, positive.id, 0)
    graph.connect(ckpt.id, 1, negative.id, 0)
    graph.connect(ckpt.id, 0, sampler.id, 0)
    graph.connect(positive.id, 0, sampler.id, 1)
    graph.connect(negative.id, 0, sampler.id, 2)
    graph.connect(latent.id, 0, sampler.id, 3)
    graph.connect(sampler.id, 0, decode.id, 0)
    graph.connect(ckpt.id, 2, decode.id, 1)
    graph.connect(decode.id, 0, save.id, 0)
    return graph


@pytest.fixture
def registry():
    return CatalogLoader(REPO_CONFIG).load_registry()


@pytest.fixture
def workflow_file(tmp_path, registry):
    path = tmp_path / "workflow.json"
    path.write_text(WorkflowSerializer(registry).to_json(text_to_image(registry)))
    return path


def run(*args):
    return main(["--config-dir", str(REPO_CONFIG), *args])


class TestValidateCommand:
    def test_valid_workflow(self, workflow_file, capsys):
        assert run("validate", str(workflow_file)) == 0
        assert "ValidationResult: valid" in capsys.readouterr().out

    def test_invalid_workflow(self, tmp_path, registry, capsys):
        graph = Graph(registry=registry)
        graph.add_node_by_type("SaveImage")
        path = tmp_path / "broken.json"
        path.write_text(WorkflowSerializer(registry).to_json(graph))

        assert run("validate", str(path)) == 1
        assert 'Required input "images" is not connected' in capsys.readouterr().out


class TestCompileCommand:
    def test_prints_request(self, workflow_file, capsys):
        assert run("compile", str(workflow_file), "--client-id", "cli-test") == 0

        request = json.loads(capsys.readouterr().out)
        assert request["client_id"] == "cli-test"
        prompt = request["prompt"]
        assert len(prompt) == 7
        sampler = next(entry for entry in prompt.values() if entry["class_type"] == "KSampler")
        assert sampler["inputs"]["steps"] == 20
        assert sampler["inputs"]["model"] == ["1", 0]

    def test_writes_output_file(self, workflow_file, tmp_path):
        output = tmp_path / "request.json"
        assert run("compile", str(workflow_file), "--output", str(output)) == 0
        assert "prompt" in json.loads(output.read_text())

    def test_refuses_invalid_workflow(self, tmp_path, registry):
        graph = Graph(registry=registry)
        graph.add_node_by_type("SaveImage")
        path = tmp_path / "broken.json"
        path.write_text(WorkflowSerializer(registry).to_json(graph))

        assert run("compile", str(path)) == 1


class TestFailures:
    def test_malformed_workflow(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{\"nodes\": [{\"id\": 1}]}")
        assert run("validate", str(path)) == 2

    def test_missing_file(self, tmp_path):
        assert run("validate", str(tmp_path / "nope.json")) == 2

    def test_missing_catalog(self, tmp_path, workflow_file):
        assert main(["--config-dir", str(tmp_path / "empty"), "validate", str(workflow_file)]) == 2
