"""
Flowgraph - Main Entry Point

Loads the node catalog, reads a persisted workflow and either validates it
or compiles it into an execution request.

    flowgraph validate workflow.json
    flowgraph compile workflow.json --client-id editor-1 --pretty
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from flowgraph.config.loader import CatalogError, CatalogLoader
from flowgraph.dag.graph import Graph
from flowgraph.dag.registry import NodeRegistry
from flowgraph.serialization.api_format import ApiPromptSerializer, CyclicGraphError
from flowgraph.serialization.workflow_json import WorkflowDeserializer, WorkflowFormatError
from flowgraph.validation.validator import GraphValidator

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def setup_node_registry(config_dir: Path) -> NodeRegistry:
    """
    Build the registry from the catalog in `config_dir`.

    Returns:
        NodeRegistry with every catalog node type plus Reroute
    """
    registry = CatalogLoader(config_dir).load_registry()
    logger.info(f"Registered {len(registry)} node types")
    return registry


def load_workflow(path: Path, registry: NodeRegistry) -> Graph:
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return WorkflowDeserializer(registry).from_json(text)


def run_validate(args: argparse.Namespace, registry: NodeRegistry) -> int:
    graph = load_workflow(args.workflow, registry)
    result = GraphValidator(registry, strict_widgets=args.strict_widgets).validate(graph)

    for issue in result.issues:
        print(issue)
    print(result)
    return 0 if result.is_valid else 1


def run_compile(args: argparse.Namespace, registry: NodeRegistry) -> int:
    graph = load_workflow(args.workflow, registry)

    result = GraphValidator(registry).validate(graph)
    if not result.is_valid:
        for issue in result.errors:
            logger.error(str(issue))
        logger.error(f"Workflow {args.workflow} is not executable")
        return 1

    serializer = ApiPromptSerializer(registry)
    text = serializer.to_json(graph, client_id=args.client_id, pretty=args.pretty)

    if args.output:
        args.output.write_text(text + "\n", encoding="utf-8")
        logger.info(f"Wrote execution request to {args.output}")
    else:
        print(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Command line parser.

    Environment Variables:
        CONFIG_DIR: Config directory path (default: "config")
        CLIENT_ID: Default client id for compiled requests
        LOG_LEVEL: Logging level (default: "INFO")
    """
    parser = argparse.ArgumentParser(prog="flowgraph", description="Workflow graph tools")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path(os.getenv("CONFIG_DIR", "config")),
        help="Directory containing the nodes/ catalog",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    validate = commands.add_parser("validate", help="Report validation issues")
    validate.add_argument("workflow", type=Path)
    validate.add_argument("--strict-widgets", action="store_true", help="Also check widget values")
    validate.set_defaults(handler=run_validate)

    compile_ = commands.add_parser("compile", help="Build the execution request")
    compile_.add_argument("workflow", type=Path)
    compile_.add_argument("--client-id", default=os.getenv("CLIENT_ID"))
    compile_.add_argument("--pretty", action="store_true")
    compile_.add_argument("--output", "-o", type=Path)
    compile_.set_defaults(handler=run_compile)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger.info(f"Config Directory: {args.config_dir}")

    try:
        registry = setup_node_registry(args.config_dir)
        return args.handler(args, registry)
    except (CatalogError, WorkflowFormatError, CyclicGraphError, OSError) as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 2


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
