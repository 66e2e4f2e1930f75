#!/usr/bin/env python3
"""
CLI tool for the Agent Operator
Renders desired resources, runs single reconciliation passes and lists Agents
"""

import asyncio
import json

import click
import yaml
from pydantic import ValidationError
from tabulate import tabulate

from config import get_config
from models import Agent
from reconciler import AgentReconciler
from resources import desired_configuration, desired_credential, desired_workload
from store import KubernetesStore, ResourceKind, StoreError


def load_manifest(filename: str) -> dict:
    """Read an Agent manifest from a YAML or JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def dump(data, output: str) -> str:
    if output == "yaml":
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2)


def _store() -> KubernetesStore:
    return KubernetesStore.from_config(get_config().kube)


@click.group()
def cli():
    """Agent Operator CLI - inspect and reconcile Azure DevOps agent pools"""
    pass


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Choice(["yaml", "json"]), default="yaml")
def render(filename, output):
    """Print the Deployment, Secret and ConfigMap an Agent manifest produces"""
    try:
        agent = Agent.from_resource(load_manifest(filename))
    except ValidationError as e:
        raise click.ClickException(f"Invalid Agent manifest: {e}")

    default_image = get_config().operator.default_image
    resources = [
        desired_workload(agent, default_image),
        desired_credential(agent),
        desired_configuration(agent),
    ]
    if output == "yaml":
        click.echo(yaml.safe_dump_all(resources, default_flow_style=False, sort_keys=False))
    else:
        click.echo(json.dumps(resources, indent=2))


@cli.command()
@click.argument("namespace")
@click.argument("name")
def reconcile(namespace, name):
    """Run a single reconciliation pass for an Agent"""
    operator_config = get_config().operator
    reconciler = AgentReconciler(
        _store(),
        requeue_after=operator_config.requeue_after,
        default_image=operator_config.default_image,
    )
    result = asyncio.run(reconciler.reconcile(namespace, name))

    for action in result.actions:
        click.echo(f"  - {action.describe()}")

    if not result.success:
        raise click.ClickException(f"Reconciliation failed: {result.message}")
    if result.requeue_after is not None:
        click.echo(f"{result.message} (requeue after {result.requeue_after}s)")
    else:
        click.echo(f"✓ {result.message}")


@cli.command()
@click.option("--namespace", "-n", default="", help="Namespace (default: all)")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
def get(namespace, output):
    """List Agents"""
    try:
        agents = asyncio.run(_store().list(ResourceKind.AGENT, namespace))
    except StoreError as e:
        raise click.ClickException(str(e))

    if output != "table":
        click.echo(dump(agents, output))
        return

    headers = ["Namespace", "Name", "Size", "Image", "Pods"]
    rows = []
    for raw in agents:
        try:
            agent = Agent.from_resource(raw)
        except ValidationError as e:
            name = (raw.get("metadata") or {}).get("name", "<unnamed>")
            raise click.ClickException(f"Invalid Agent {name}: {e}")
        rows.append(
            [
                agent.namespace,
                agent.name,
                agent.spec.size,
                agent.spec.image or "(default)",
                len(agent.status.agents),
            ]
        )
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
def run():
    """Run the operator until interrupted"""
    from main import main

    asyncio.run(main())


if __name__ == "__main__":
    cli()
