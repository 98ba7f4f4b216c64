# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Istio Attestor CLI

Commands:
- serve: run the gRPC node attestor host
- verify: attest a single token in-process and print its SPIFFE ID
- info: print plugin metadata
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich import box

from istio_attestor import __version__
from istio_attestor.attestor import PLUGIN_NAME, IstioAttestorPlugin
from istio_attestor.config import DEFAULT_ADDRESS, AttestorConfig, ServerSettings
from istio_attestor.exceptions import AttestorError
from istio_attestor.metrics import start_metrics_server
from istio_attestor.models import AttestationData, AttestationRequest
from istio_attestor.server import serve as serve_grpc
from istio_attestor.tracing import setup_tracing
from istio_attestor.transport import QueueAttestStream

console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _error_chain(exc: BaseException) -> list[str]:
    """Messages of ``exc`` and its causes, outermost first."""
    chain = []
    current: Optional[BaseException] = exc
    while current is not None:
        chain.append(f"{type(current).__name__}: {current}")
        current = current.__cause__
    return chain


@click.group()
@click.version_option(__version__, prog_name="istio-attestor")
def app():
    """Istio node attestor for SPIRE: Kubernetes token review based attestation."""


@app.command()
@click.option("--address", default=None, help=f"Listen address (default: {DEFAULT_ADDRESS}).")
@click.option("--k8s-config-path", default=None, help="Kubeconfig to configure at startup; '' for in-cluster.")
@click.option("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    show_default=True,
)
def serve(address: Optional[str], k8s_config_path: Optional[str], metrics_port: Optional[int], log_level: str):
    """Run the gRPC node attestor host."""
    _setup_logging(log_level)
    setup_tracing()

    settings = ServerSettings.from_env()
    if address:
        settings.address = address
    if k8s_config_path is not None:
        settings.initial_config = AttestorConfig(k8s_config_path=k8s_config_path)

    plugin = IstioAttestorPlugin()
    if settings.initial_config is not None:
        try:
            plugin.apply_config(settings.initial_config)
        except AttestorError as exc:
            console.print(f"[bold red]Configuration failed:[/bold red] {exc}")
            sys.exit(1)

    if metrics_port:
        start_metrics_server(metrics_port)

    asyncio.run(serve_grpc(plugin, settings.address))


@app.command()
@click.argument("token")
@click.option("--trust-domain", required=True, help="Trust domain for the SPIFFE ID.")
@click.option("--k8s-config-path", default="", help="Kubeconfig path; empty for in-cluster.")
@click.option("--json", "json_flag", is_flag=True, help="Output as JSON.")
def verify(token: str, trust_domain: str, k8s_config_path: str, json_flag: bool):
    """Attest TOKEN once and print the resulting SPIFFE ID."""
    plugin = IstioAttestorPlugin()
    payload = json.dumps({"token": token, "trustDomain": trust_domain}).encode("utf-8")
    stream = QueueAttestStream(
        AttestationRequest(attestation_data=AttestationData(type=PLUGIN_NAME, data=payload))
    )

    try:
        plugin.apply_config(AttestorConfig(k8s_config_path=k8s_config_path))
        response = asyncio.run(plugin.attest(stream))
    except AttestorError as exc:
        chain = _error_chain(exc)
        if json_flag:
            click.echo(json.dumps({"valid": False, "errors": chain}, indent=2))
        else:
            console.print("[bold red]Attestation failed[/bold red]")
            for line in chain:
                console.print(f"  {line}")
        sys.exit(1)

    if json_flag:
        click.echo(json.dumps({"valid": response.valid, "baseSPIFFEID": response.base_spiffe_id}, indent=2))
        return
    console.print(f"[bold green]Attested:[/bold green] {response.base_spiffe_id}")


@app.command()
@click.option("--json", "json_flag", is_flag=True, help="Output as JSON.")
def info(json_flag: bool):
    """Show plugin metadata."""
    plugin_info = IstioAttestorPlugin().get_plugin_info()
    if json_flag:
        click.echo(json.dumps(plugin_info.model_dump(), indent=2))
        return

    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Name", plugin_info.name)
    table.add_row("Version", plugin_info.version)
    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
