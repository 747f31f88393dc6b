# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sshlaunch/cli/app.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from sshlaunch.config.loader import load_config
from sshlaunch.errors import LaunchError
from sshlaunch.launch.bridge import StdioCoordinator
from sshlaunch.launch.orchestrator import BootstrapOrchestrator
from sshlaunch.launch.registry import ConnectionRegistry
from sshlaunch.logging.log import init_logging
from sshlaunch.observers.dispatcher import EventBus
from sshlaunch.observers.jsonfile import JsonFileObserver
from sshlaunch.observers.logger import LoggerObserver
from sshlaunch.verifiers.manual import ManualKeyVerifier
from sshlaunch.verifiers.store import HostKeyStore


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Launch agents on remote nodes over SSH")
trust_app = typer.Typer(help="Manage trusted host keys")
app.add_typer(trust_app, name="trust")


def _load(config: Path):
    try:
        return load_config(config)
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"Invalid config {config}: {e}")


# ------------------------------------------------------------------------------
# launch
# ------------------------------------------------------------------------------

@app.command()
def launch(
    config: Path = typer.Argument(..., help="sshlaunch YAML config"),
    node: str = typer.Option(..., "--node", "-n", help="Node name from the config"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output on the console"),
    events: Optional[Path] = typer.Option(None, "--events", help="Write lifecycle events as JSON lines"),
):
    """
    Start the agent on NODE and bridge it to this process's stdin/stdout
    until it exits. The exit code is the agent's exit status.
    """
    # stdout belongs to the agent stream
    logger, run_id, log_path = init_logging(verbose=verbose, stream=sys.stderr)
    typer.echo(f"  Run ID   : {run_id}", err=True)
    typer.echo(f"  Logs     : {log_path}", err=True)

    cfg = _load(config)

    observers = [LoggerObserver(logger)]
    if events:
        observers.append(JsonFileObserver(events))
    bus = EventBus(observers=observers)

    coordinator = StdioCoordinator()
    registry = ConnectionRegistry()
    try:
        orchestrator = BootstrapOrchestrator.from_config(cfg, node, coordinator, registry, bus=bus)
    except (KeyError, ValueError) as e:
        raise typer.BadParameter(str(e))

    try:
        result = orchestrator.launch()
        if not result.ok:
            typer.echo(f"Launch failed at {result.stage.value}: {result.error}", err=True)
            raise typer.Exit(code=1)
        coordinator.wait()
        orchestrator.teardown()
    except LaunchError as e:
        typer.echo(f"Launch rejected: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        registry.close_all()

    info = orchestrator.exit_info
    if info is not None:
        typer.echo(info.message(), err=True)
    raise typer.Exit(code=info.exit_status if info and info.exit_status is not None else 1)


# ------------------------------------------------------------------------------
# host keys
# ------------------------------------------------------------------------------

@trust_app.command("list")
def trust_list(config: Path = typer.Argument(..., help="sshlaunch YAML config")):
    """Show host keys waiting for approval."""
    store = HostKeyStore(_load(config).trust_store_dir)
    pending = store.list_pending()
    if not pending:
        typer.echo("No pending host keys")
        return
    for target_id, identity in pending.items():
        trusted = store.get(target_id)
        state = "changed" if trusted else "new"
        typer.echo(f"{target_id}\t{state}\t{identity.algorithm}\t{identity.fingerprint}")


@trust_app.command("approve")
def trust_approve(
    config: Path = typer.Argument(..., help="sshlaunch YAML config"),
    node: str = typer.Argument(..., help="Node name"),
):
    """Trust the pending host key of NODE."""
    store = HostKeyStore(_load(config).trust_store_dir)
    try:
        identity = store.approve(node)
    except KeyError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Trusted {identity.algorithm} {identity.fingerprint} for {node}")


@app.command()
def fingerprint(
    config: Path = typer.Argument(..., help="sshlaunch YAML config"),
    node: str = typer.Option(..., "--node", "-n"),
):
    """Show the host key NODE is expected to present."""
    cfg = _load(config)
    try:
        node_cfg = cfg.node(node)
    except KeyError as e:
        raise typer.BadParameter(str(e))

    hkv = node_cfg.host_key_verification
    if hkv.strategy == "manual" and hkv.key:
        identity = ManualKeyVerifier(hkv.key, label=node).identity
    else:
        identity = HostKeyStore(cfg.trust_store_dir).get(node)
    if identity is None:
        typer.echo(f"No trusted host key stored for {node}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{identity.algorithm} {identity.fingerprint}")


if __name__ == "__main__":
    app()
