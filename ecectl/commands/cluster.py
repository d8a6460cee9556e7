import logging
from contextlib import contextmanager
from pathlib import Path

import typer
import yaml

from ecectl.client import ControlPlaneClient
from ecectl.config import Config
from ecectl.engine import ConvergenceEngine
from ecectl.errors import EceError
from ecectl.expander import validate_tree
from ecectl.lifecycle import ClusterLifecycle
from ecectl.state import StateStore

app = typer.Typer(help="Manage search clusters and their companions.")

logger = logging.getLogger(__name__)


def load_config() -> Config:
    config = Config.from_env()
    config.validate()
    return config


def build_lifecycle(config: Config) -> ClusterLifecycle:
    client = ControlPlaneClient(config)
    return ClusterLifecycle.from_config(ConvergenceEngine.from_config(client))


@contextmanager
def open_lifecycle(config: Config):
    """Yield a lifecycle whose HTTP session is closed afterwards."""
    lifecycle = build_lifecycle(config)
    try:
        yield lifecycle
    finally:
        lifecycle.client.close()


@contextmanager
def handle_errors():
    try:
        yield
    except EceError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(code=1)


def load_cluster_file(path: Path) -> dict:
    if not path.exists():
        typer.echo(f"❌ Cluster definition not found: {path}")
        raise typer.Exit(code=1)
    try:
        with open(path) as f:
            tree = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        typer.echo(f"❌ Invalid YAML in {path}: {e}")
        raise typer.Exit(code=1)
    with handle_errors():
        validate_tree(tree)
    logger.info(f"📄 Loaded config from {path}")
    return tree


def echo_credentials(credentials) -> None:
    typer.echo("🔑 Credentials (shown only once by the control plane):")
    typer.echo(f"   username: {credentials.username}")
    typer.echo(f"   password: {credentials.password}")


@app.command("create")
def create_cluster(
    file: Path = typer.Option(..., "--file", "-f", help="Path to the cluster YAML definition"),
):
    """Create a cluster (and companion) and wait until it is started."""
    tree = load_cluster_file(file)
    name = tree["name"]

    with handle_errors():
        config = load_config()
    store = StateStore(config.state_path)
    identity = store.get_identity(name)
    if identity.exists:
        typer.echo(f"❌ Cluster '{name}' already exists ({identity.cluster_id}). Use 'update' instead.")
        raise typer.Exit(code=1)

    credentials = None
    try:
        with open_lifecycle(config) as lifecycle, handle_errors():
            result = lifecycle.create(tree, identity)
            credentials = result.credentials
    finally:
        store.put(name, identity, credentials)

    typer.echo(f"✅ Cluster '{name}' is ready: {identity.cluster_id}")
    if identity.companion_id:
        typer.echo(f"✅ Companion is ready: {identity.companion_id}")
    if credentials is not None:
        echo_credentials(credentials)


@app.command("update")
def update_cluster(
    file: Path = typer.Option(..., "--file", "-f", help="Path to the cluster YAML definition"),
):
    """Apply the cluster definition; creates what does not exist yet."""
    tree = load_cluster_file(file)
    name = tree["name"]

    with handle_errors():
        config = load_config()
    store = StateStore(config.state_path)
    identity = store.get_identity(name)

    credentials = None
    try:
        with open_lifecycle(config) as lifecycle, handle_errors():
            result = lifecycle.apply(tree, identity)
            credentials = result.credentials
    finally:
        store.put(name, identity, credentials)

    typer.echo(f"✅ Cluster '{name}' is up to date: {identity.cluster_id}")
    if credentials is not None:
        echo_credentials(credentials)


@app.command("delete")
def delete_cluster(
    name: str = typer.Option(..., help="Cluster name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Shut down and delete a cluster."""
    with handle_errors():
        config = load_config()
    store = StateStore(config.state_path)
    identity = store.get_identity(name)
    if not identity.exists:
        typer.echo(f"🔍 Cluster '{name}' is not managed here, nothing to delete.")
        return

    if not yes:
        confirm = typer.confirm(f"Are you sure you want to delete cluster '{name}'?", default=False)
        if not confirm:
            typer.echo("❌ Deletion cancelled.")
            raise typer.Exit()

    try:
        with open_lifecycle(config) as lifecycle, handle_errors():
            lifecycle.delete(identity)
    finally:
        store.put(name, identity)

    typer.echo(f"✅ Cluster '{name}' deleted.")


@app.command("status")
def cluster_status(name: str = typer.Option(..., help="Cluster name")):
    """Show the live state of a cluster in definition form."""
    with handle_errors():
        config = load_config()
    store = StateStore(config.state_path)
    identity = store.get_identity(name)

    with open_lifecycle(config) as lifecycle, handle_errors():
        tree = lifecycle.read(identity)
    store.put(name, identity)

    if tree is None:
        typer.echo(f"🔍 Cluster '{name}' does not exist.")
        raise typer.Exit(code=1)
    typer.echo(f"📡 Status for cluster: {name} ({identity.cluster_id})")
    typer.echo(yaml.safe_dump(tree, sort_keys=False))


@app.command("diff")
def diff_cluster(
    file: Path = typer.Option(..., "--file", "-f", help="Path to the cluster YAML definition"),
):
    """Compare a definition with the live cluster. Exits 2 when they differ."""
    tree = load_cluster_file(file)
    name = tree["name"]

    with handle_errors():
        config = load_config()
    store = StateStore(config.state_path)
    identity = store.get_identity(name)

    with open_lifecycle(config) as lifecycle, handle_errors():
        drifts = lifecycle.diff(tree, identity)
    store.put(name, identity)

    if not drifts:
        typer.echo(f"✅ No drift for cluster '{name}'.")
        return
    typer.echo(f"⚠️  Cluster '{name}' differs from its definition:")
    for drift in drifts:
        typer.echo(f"  - {drift}")
    raise typer.Exit(code=2)


@app.command("list")
def list_clusters():
    """List all clusters recorded in the local state file."""
    with handle_errors():
        config = Config.from_env()
    clusters = StateStore(config.state_path).load()
    if not clusters:
        typer.echo("No clusters recorded.")
        return
    for name, info in clusters.items():
        companion = info.get("companion_id") or "-"
        typer.echo(f"{name}: {info['cluster_id']} (companion: {companion})")
