"""
Click CLI for mxaws.
"""

import json
import logging
import sys
from functools import wraps
from typing import Callable, List

import click

from .clients import ProviderClients, create_clients
from .config import CredentialMode, load_config
from .deploy import (
    await_deployment_outcome,
    format_failure_report,
    get_deployment_group_data,
    s3_revision,
    start_deployment,
    summarize_failures,
)
from .errors import DeploymentFailedError, MxawsError
from .events import logging_observer
from .kvstore import delete_item, get_item, list_tables, put_item
from .lifecycle import (
    reboot_db_instance,
    reboot_instances,
    resize_db_instance,
    resize_instances,
    start_db_instance,
    start_instances,
    stop_db_instance,
    stop_instances,
)
from .status import ByEnvironment, ByName, get_compute_status, get_database_status
from .wait import (
    ConnectionParams,
    wait_for_compute_state,
    wait_for_database_state,
    wait_for_login_ready,
    wait_for_tcp_reachable,
)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _clients() -> ProviderClients:
    """Build the provider clients on first use and cache them on the context."""
    obj = click.get_current_context().find_root().obj
    if obj.get("clients") is None:
        config = load_config(mode=obj.get("mode"))
        obj["clients"] = create_clients(config)
    return obj["clients"]


def handle_errors(func: Callable) -> Callable:
    """Turn mxaws errors into a message on stderr and exit code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MxawsError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def _echo_records(records: List, output_json: bool) -> None:
    if output_json:
        click.echo(json.dumps([record.to_dict() for record in records], indent=2, default=str))
        return
    for record in records:
        click.echo("  ".join(f"{value}" for value in record.to_dict().values()))


def _load_json(value: str) -> dict:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.option("--strict-credentials", is_flag=True, help="Fail instead of falling back to ambient credentials")
@click.pass_context
def main(ctx, verbose: bool, strict_credentials: bool):
    """
    mxaws - EC2, RDS, CodeDeploy and DynamoDB orchestration helpers.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("clients", None)
    ctx.obj["mode"] = CredentialMode.STRICT if strict_credentials else None


# EC2

@main.group()
def ec2():
    """EC2 instance commands."""


@ec2.command("status")
@click.argument("targets", nargs=-1)
@click.option("--env", "by_env", is_flag=True, help="Treat targets as Environment tag values")
@click.option("--json", "output_json", is_flag=True, help="Output JSON")
@handle_errors
def ec2_status(targets, by_env: bool, output_json: bool):
    """Show instances by Name (or Environment) tag; all instances when no target is given."""
    lookup = [ByEnvironment(t) if by_env else ByName(t) for t in targets] or None
    _echo_records(get_compute_status(_clients(), lookup), output_json)


@ec2.command("start")
@click.argument("instance_ids", nargs=-1, required=True)
@handle_errors
def ec2_start(instance_ids):
    """Start instances (does not wait)."""
    start_instances(_clients(), instance_ids)
    click.echo(f"Start requested for {', '.join(instance_ids)}")


@ec2.command("stop")
@click.argument("instance_ids", nargs=-1, required=True)
@handle_errors
def ec2_stop(instance_ids):
    """Stop instances (does not wait)."""
    stop_instances(_clients(), instance_ids)
    click.echo(f"Stop requested for {', '.join(instance_ids)}")


@ec2.command("reboot")
@click.argument("instance_ids", nargs=-1, required=True)
@handle_errors
def ec2_reboot(instance_ids):
    """Reboot instances (does not wait)."""
    reboot_instances(_clients(), instance_ids)
    click.echo(f"Reboot requested for {', '.join(instance_ids)}")


@ec2.command("resize")
@click.argument("instance_ids", nargs=-1, required=True)
@click.option("--size", required=True, help="New instance type, e.g. t3.large")
@handle_errors
def ec2_resize(instance_ids, size: str):
    """Resize instances, keeping each one's power state."""
    resize_instances(_clients(), instance_ids, size, observer=logging_observer)
    click.echo(f"Resized {', '.join(instance_ids)} to {size}")


@ec2.command("wait")
@click.argument("instance_ids", nargs=-1, required=True)
@click.option("--state", type=click.Choice(["running", "stopped", "terminated"]), required=True)
@handle_errors
def ec2_wait(instance_ids, state: str):
    """Wait for instances to reach a state."""
    wait_for_compute_state(_clients(), state, instance_ids)
    click.echo(f"{', '.join(instance_ids)}: {state}")


# RDS

@main.group()
def rds():
    """RDS instance commands."""


@rds.command("status")
@click.argument("identifiers", nargs=-1)
@click.option("--json", "output_json", is_flag=True, help="Output JSON")
@handle_errors
def rds_status(identifiers, output_json: bool):
    """Show database instances; all of them when no identifier is given."""
    _echo_records(get_database_status(_clients(), list(identifiers) or None), output_json)


@rds.command("start")
@click.argument("identifier")
@handle_errors
def rds_start(identifier: str):
    """Start a database instance (does not wait)."""
    start_db_instance(_clients(), identifier)
    click.echo(f"Start requested for {identifier}")


@rds.command("stop")
@click.argument("identifier")
@handle_errors
def rds_stop(identifier: str):
    """Stop a database instance (does not wait)."""
    stop_db_instance(_clients(), identifier)
    click.echo(f"Stop requested for {identifier}")


@rds.command("reboot")
@click.argument("identifier")
@handle_errors
def rds_reboot(identifier: str):
    """Reboot a database instance (does not wait)."""
    reboot_db_instance(_clients(), identifier)
    click.echo(f"Reboot requested for {identifier}")


@rds.command("resize")
@click.argument("identifier")
@click.option("--size", required=True, help="New instance class, e.g. db.t3.medium")
@handle_errors
def rds_resize(identifier: str, size: str):
    """Resize a database instance immediately (does not wait)."""
    resize_db_instance(_clients(), identifier, size)
    click.echo(f"Resize of {identifier} to {size} requested")


@rds.command("wait")
@click.argument("identifier")
@click.option("--state", type=click.Choice(["available", "stopped", "deleted"]), default="available")
@handle_errors
def rds_wait(identifier: str, state: str):
    """Wait for a database instance to reach a state."""
    wait_for_database_state(_clients(), state, identifier)
    click.echo(f"{identifier}: {state}")


@rds.command("wait-login")
@click.option("--host", required=True)
@click.option("--port", type=int, default=5432, show_default=True)
@click.option("--user", required=True)
@click.option("--password", required=True, envvar="MXAWS_DB_PASSWORD")
@click.option("--dbname", default="postgres", show_default=True)
@click.option("--interval", type=float, default=30, show_default=True, help="Seconds between attempts")
@click.option("--attempts", type=int, default=40, show_default=True, help="Maximum login attempts")
@handle_errors
def rds_wait_login(host: str, port: int, user: str, password: str, dbname: str, interval: float, attempts: int):
    """Wait until the database accepts an authenticated login."""
    params = ConnectionParams(host=host, port=port, user=user, password=password, dbname=dbname)
    result = wait_for_login_ready(params, interval, attempts, observer=logging_observer)
    click.echo(f"{host}: login ready after {result.attempts} attempt(s)")


# Network

@main.group()
def net():
    """Network reachability commands."""


@net.command("wait-port")
@click.argument("host")
@click.argument("port", type=int)
@click.option("--minutes", type=float, default=20, show_default=True, help="Total time limit")
@handle_errors
def net_wait_port(host: str, port: int, minutes: float):
    """Wait until HOST:PORT accepts a connection and sends data."""
    wait_for_tcp_reachable(host, port, minutes, observer=logging_observer)
    click.echo(f"{host}:{port} is reachable")


# CodeDeploy

@main.group()
def deploy():
    """CodeDeploy commands."""


@deploy.command("run")
@click.argument("application")
@click.argument("group")
@click.option("--bucket", required=True, help="S3 bucket holding the bundle")
@click.option("--key", required=True, help="S3 key of the bundle")
@click.option("--bundle-type", type=click.Choice(["zip", "tar", "tgz", "YAML", "JSON"]), default="zip")
@click.option("--no-wait", is_flag=True, help="Return once the deployment is created")
@click.option("--json", "output_json", is_flag=True, help="Output failure reports as JSON")
@handle_errors
def deploy_run(application: str, group: str, bucket: str, key: str, bundle_type: str, no_wait: bool, output_json: bool):
    """Deploy a revision and report per-instance failures."""
    clients = _clients()
    handle = start_deployment(clients, application, group, s3_revision(bucket, key, bundle_type),
                              observer=logging_observer)
    click.echo(f"Deployment started: {handle.deployment_id}")
    if no_wait:
        return

    try:
        await_deployment_outcome(clients, handle, observer=logging_observer)
    except DeploymentFailedError as e:
        reports = summarize_failures(clients, handle)
        if output_json:
            click.echo(json.dumps([r.to_dict() for r in reports], indent=2, default=str))
        else:
            for line in format_failure_report(reports):
                click.echo(line)
        click.echo(f"Deployment {handle.deployment_id} {e.status.lower()}", err=True)
        sys.exit(1)

    click.echo(f"Deployment {handle.deployment_id} succeeded")


@deploy.command("group")
@click.argument("application")
@click.argument("group")
@handle_errors
def deploy_group(application: str, group: str):
    """Show a deployment group's configuration."""
    data = get_deployment_group_data(_clients(), application, group)
    click.echo(json.dumps(data.get("deploymentGroupInfo", data), indent=2, default=str))


# DynamoDB

@main.group()
def kv():
    """DynamoDB commands."""


@kv.command("tables")
@handle_errors
def kv_tables():
    """List tables."""
    for name in list_tables(_clients()):
        click.echo(name)


@kv.command("get")
@click.argument("table")
@click.argument("key_json")
@handle_errors
def kv_get(table: str, key_json: str):
    """Get an item by KEY_JSON, e.g. '{"id": {"S": "abc"}}'."""
    item = get_item(_clients(), _load_json(key_json), table)
    if item is None:
        click.echo("Item not found", err=True)
        sys.exit(2)
    click.echo(json.dumps(item, indent=2))


@kv.command("put")
@click.argument("table")
@click.argument("item_json")
@handle_errors
def kv_put(table: str, item_json: str):
    """Put ITEM_JSON into TABLE."""
    put_item(_clients(), _load_json(item_json), table)
    click.echo("OK")


@kv.command("delete")
@click.argument("table")
@click.argument("key_json")
@handle_errors
def kv_delete(table: str, key_json: str):
    """Delete the item with KEY_JSON from TABLE."""
    delete_item(_clients(), _load_json(key_json), table)
    click.echo("OK")


if __name__ == "__main__":
    main()
