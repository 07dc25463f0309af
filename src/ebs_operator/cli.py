"""ebs-operator CLI - Tyro implementation."""

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Annotated, Literal

import attrs
import tyro
import yaml
from rich import print
from rich.console import Console
from rich.table import Table

from ebs_operator.config import OperatorConfig
from ebs_operator.controllers import render_workload
from ebs_operator.errors import ConfigurationError, IrrecoverableWiringError, OperatorStopped
from ebs_operator.manifests import AssetLoader
from ebs_operator.pipeline import PipelineExecutor, Topology, controller_pipeline, node_pipeline
from ebs_operator.state import ClusterState, OperatorSpec
from ebs_operator.wiring import ClusterClients, Operator, build_operator

logger = logging.getLogger(__name__)

TopologyName = Literal["standalone", "hosted"]


# Subcommand definitions using attrs
@attrs.define
class Start:
    """Connect to the cluster(s) and run every controller until interrupted."""


@attrs.define
class Render:
    """Run a pipeline offline and print the final manifest."""

    topology: TopologyName = "standalone"
    """Topology whose hook list is used."""

    state: Annotated[Path | None, tyro.conf.arg(aliases=["-s"])] = None
    """YAML description of the cluster state (infrastructure, configMaps, nodes, secrets, operatorSpec)."""

    asset: str = "controller.yaml"
    """Base manifest: controller.yaml or node.yaml."""


@attrs.define
class Hooks:
    """Show the hook execution order."""

    topology: TopologyName | None = None
    """Only show this topology."""

    json: bool = False
    """Output as JSON."""


Command = (
    Annotated[Start, tyro.conf.subcommand(name="start")]
    | Annotated[Render, tyro.conf.subcommand(name="render")]
    | Annotated[Hooks, tyro.conf.subcommand(name="hooks")]
)


def setup_logging(debug: bool = False) -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if debug:
        logging.getLogger("ebs_operator").setLevel(logging.DEBUG)


def load_config(config_path: Path | None) -> OperatorConfig:
    if config_path is None:
        return OperatorConfig()
    return OperatorConfig.from_yaml(config_path)


async def serve(operator: Operator) -> None:
    """Run the orchestrator until SIGINT or SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    await operator.orchestrator.run(stop)


def start_operator(config: OperatorConfig) -> int:
    """Wire and run the operator.

    Returns:
        Process exit code
    """
    try:
        management = ClusterClients.connect(config.kubeconfig)
        guest = ClusterClients.connect(config.guest_kubeconfig) if config.topology.is_hosted else None
        operator = build_operator(config, management, guest)
    except IrrecoverableWiringError as e:
        logger.error("Cannot start: %s", e)
        return 1

    try:
        asyncio.run(serve(operator))
    except OperatorStopped as e:
        logger.info("Operator %s", e)
    return 1


def select_pipeline(config: OperatorConfig, topology: Topology, asset: str) -> PipelineExecutor:
    if asset == "node.yaml":
        namespace = config.guest_namespace if topology.is_hosted else config.namespace
        return node_pipeline(namespace)
    return controller_pipeline(topology, config.namespace, config.hypershift_image, config.guest_namespace)


def render_manifest(config: OperatorConfig, cmd: Render) -> None:
    """Handle the render command."""
    topology = Topology(cmd.topology)

    data = {}
    if cmd.state is not None:
        if not cmd.state.exists():
            print(f"[red]State file not found: {cmd.state}[/red]", file=sys.stderr)
            sys.exit(1)
        with cmd.state.open() as f:
            data = yaml.safe_load(f) or {}

    state = ClusterState.from_dict(data)
    operator_spec = OperatorSpec.model_validate(data.get("operatorSpec") or {})

    namespace = config.guest_namespace if topology.is_hosted and cmd.asset == "node.yaml" else config.namespace
    loader = AssetLoader({**config.image_replacements(), "NAMESPACE": namespace})
    pipeline = select_pipeline(config, topology, cmd.asset)

    try:
        manifest = render_workload(loader, cmd.asset, pipeline, state, operator_spec)
    except ConfigurationError as e:
        print(f"[red]Error: {e}[/red]", file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError:
        print(f"[red]Unknown asset: {cmd.asset}[/red]", file=sys.stderr)
        sys.exit(1)

    sys.stdout.write(yaml.safe_dump(manifest, sort_keys=False))


def show_hooks(config: OperatorConfig, cmd: Hooks) -> None:
    """Handle the hooks command."""
    topologies = [Topology(cmd.topology)] if cmd.topology else list(Topology)
    pipelines = [select_pipeline(config, t, "controller.yaml") for t in topologies]
    pipelines.append(node_pipeline(config.namespace))

    if cmd.json:
        data = {p.name: [{"name": n, "description": d} for n, d in p.describe()] for p in pipelines}
        sys.stdout.write(json.dumps(data, indent=2) + "\n")
        return

    console = Console()
    for pipeline in pipelines:
        table = Table(title=pipeline.name, show_header=True, show_lines=True)
        table.add_column("#", style="dim", width=3)
        table.add_column("Hook", style="cyan", no_wrap=True)
        table.add_column("Description", style="yellow")
        for i, (name, description) in enumerate(pipeline.describe(), 1):
            table.add_row(str(i), name, description or "-")
        console.print(table)


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config: Annotated[Path | None, tyro.conf.arg(help="YAML configuration file")] = None,
) -> None:
    """ebs-operator - AWS EBS CSI driver operator.

    Deploys and reconciles the AWS EBS CSI driver, either next to the
    operator or on a hosted control plane.
    """
    operator_config = load_config(config)
    setup_logging(operator_config.debug)

    if isinstance(cmd, Start):
        sys.exit(start_operator(operator_config))

    elif isinstance(cmd, Render):
        render_manifest(operator_config, cmd)

    elif isinstance(cmd, Hooks):
        show_hooks(operator_config, cmd)


def entry_point() -> None:
    """Entry point for the ebs-operator command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
