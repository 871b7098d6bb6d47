"""
Pantry CLI - plan and apply recipes.

Commands:
    pantry plan <recipe.py>     - Show what would change
    pantry apply <recipe.py>    - Converge the target
    pantry state ...            - Inspect recorded state and history
    pantry values ...           - Inspect stored generated values
    pantry version              - Show version
"""

import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import click

from pantry.cookbook import load_recipes
from pantry.core.executor import Executor, Outcome, PlanResult
from pantry.core.resource import Platform
from pantry.logging import get_pantry_logger, setup_logging
from pantry.state.store import STATE_DB_ENV
from pantry.transport import Transport, LocalTransport
from pantry.values import RandomValues, SeededValues, StoredValues, ValueProvider

logger = get_pantry_logger(__name__)


def target_options(fn):
    """Options shared by plan and apply: where to converge and which values to use."""
    options = [
        click.option('--host', help='Remote host for SSH'),
        click.option('--user', help='SSH username'),
        click.option('--key', help='SSH private key file'),
        click.option('--port', default=22, help='SSH port (default: 22)'),
        click.option('--sudo', is_flag=True, help='Use sudo for remote commands'),
        click.option('--values', 'values_mode', envvar='PANTRY_VALUES', default='random',
                     type=click.Choice(['random', 'seeded', 'stored']),
                     help='How generated template values are produced (default: random)'),
        click.option('--seed', envvar='PANTRY_SEED', help='Seed for --values seeded'),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group(invoke_without_command=True)
@click.option('--log-level', envvar='PANTRY_LOG_LEVEL', default='WARNING',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Log level (default: WARNING)')
@click.option('--state-db', envvar=STATE_DB_ENV, type=click.Path(dir_okay=False),
              help='State database path (default: ~/.pantry/state.db)')
@click.pass_context
def cli(ctx, log_level: str, state_db: Optional[str]):
    """Pantry - declarative host configuration in Python."""
    setup_logging(level=log_level, force=True)
    ctx.ensure_object(dict)
    ctx.obj["state_db"] = state_db
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument('recipe_file', type=click.Path(exists=True, dir_okay=False))
@target_options
@click.pass_context
def plan(ctx, recipe_file: str, host: Optional[str], user: Optional[str], key: Optional[str],
         port: int, sudo: bool, values_mode: str, seed: Optional[str]):
    """
    Show what would change without applying.

    Example:
        pantry plan cookbooks/testproject/recipes/app_setup.py
        pantry plan app_setup.py --host web1.example.com --user admin --sudo
    """
    where = f" on {host}" if host else ""
    click.echo(f"Planning {recipe_file}{where}...\n")

    with _executor(ctx, recipe_file, host, user, key, port, sudo, values_mode, seed) as executor:
        plan_result = executor.plan()

    _display_errors("Errors during planning:", plan_result)

    if not plan_result.has_changes:
        click.secho("No changes needed.", fg="green")
        if plan_result.has_errors:
            sys.exit(1)
        return

    click.echo("Pantry will perform the following actions:\n")
    for resource_id, resource_plan in plan_result.plans.items():
        if resource_plan.has_changes():
            _display_plan(resource_id, resource_plan)

    click.echo(f"Plan: {plan_result.change_count} to change")
    click.echo(f"\nRun 'pantry apply {recipe_file}' to apply these changes.")
    if plan_result.has_errors:
        sys.exit(1)


@cli.command()
@click.argument('recipe_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation')
@target_options
@click.pass_context
def apply(ctx, recipe_file: str, yes: bool, host: Optional[str], user: Optional[str],
          key: Optional[str], port: int, sudo: bool, values_mode: str, seed: Optional[str]):
    """
    Converge the target to the recipe.

    Example:
        pantry apply app_setup.py
        pantry apply app_setup.py --yes --values stored
    """
    where = f" on {host}" if host else ""
    click.echo(f"Planning {recipe_file}{where}...\n")

    with _executor(ctx, recipe_file, host, user, key, port, sudo, values_mode, seed) as executor, \
            _open_store(ctx) as store:
        executor.enable_state_tracking(store)
        plan_result = executor.plan()

        if plan_result.has_changes:
            click.echo(f"Applying {plan_result.change_count} changes...\n")
            if not yes and not click.confirm("Proceed with apply?"):
                click.echo("Aborted.")
                return

        apply_result = executor.apply(plan_result)

    click.echo()
    for resource_id, outcome in apply_result.outcomes.items():
        logger.resource_status(resource_id, outcome.value)

    if apply_result.errors:
        click.secho("\nErrors during apply:", fg="red")
        for resource_id, error in apply_result.errors.items():
            click.secho(f"  ! {resource_id}: {error}", fg="red")
        sys.exit(1)

    converged = len(apply_result.with_outcome(Outcome.CONVERGED))
    compliant = len(apply_result.with_outcome(Outcome.COMPLIANT))
    click.echo()
    logger.success(
        f"Apply complete! {converged} converged, {compliant} compliant "
        f"({apply_result.duration:.2f}s)"
    )


@cli.command()
def version():
    """Show Pantry version."""
    from pantry import __version__
    click.echo(f"pantry version {__version__}")


@cli.command()
def platform_info():
    """Show detected platform information."""
    plat = Platform.detect()
    click.echo("Platform Information:")
    click.echo(f"  System:  {plat.system}")
    click.echo(f"  Distro:  {plat.distro}")
    click.echo(f"  Version: {plat.version}")
    click.echo(f"  Arch:    {plat.arch}")


@cli.group()
def state():
    """Inspect recorded resource state and history."""
    pass


@state.command("list")
@click.pass_context
def state_list(ctx):
    """List all managed resources."""
    with _open_store(ctx) as store:
        resources = store.list_resources()

    if not resources:
        click.echo("No managed resources found.")
        click.echo("Run 'pantry apply' to record state.")
        return

    click.echo(f"{'RESOURCE':<40} {'STATUS':<12} {'LAST APPLIED'}")
    click.echo("-" * 80)
    for res in resources:
        click.echo(f"{res.id:<40} {res.status:<12} {res.applied_at.strftime('%Y-%m-%d %H:%M')}")


@state.command("show")
@click.argument("resource_id")
@click.pass_context
def state_show(ctx, resource_id: str):
    """Show detailed state for a resource."""
    with _open_store(ctx) as store:
        res = store.get_resource(resource_id)
        history = store.get_history(resource_id, 5) if res else []

    if not res:
        click.secho(f"Resource not found: {resource_id}", fg="red")
        sys.exit(1)

    click.echo(f"Resource: {res.id}")
    click.echo(f"Type: {res.type}")
    click.echo(f"Status: {res.status}")
    click.echo(f"Last Applied: {res.applied_at.strftime('%Y-%m-%d %H:%M:%S')} by {res.applied_by}")
    click.echo(f"Recipe: {res.config_file}")
    click.echo(f"Hostname: {res.hostname}")

    click.echo("\nActual State:")
    for key, value in res.actual_state.items():
        click.echo(f"  {key}: {_format_value(key, value)}")

    if history:
        click.echo("\nRecent History:")
        for entry in history:
            symbol = "✓" if entry.success else "✗"
            click.echo(f"  {entry.timestamp.strftime('%Y-%m-%d %H:%M:%S')} {symbol} {entry.action} by {entry.user}")


@state.command("history")
@click.argument("resource_id")
@click.option("--limit", default=10, help="Number of history entries to show")
@click.pass_context
def state_history(ctx, resource_id: str, limit: int):
    """Show change history for a resource."""
    with _open_store(ctx) as store:
        history = store.get_history(resource_id, limit)

    if not history:
        click.echo(f"No history found for {resource_id}")
        return

    click.echo(f"History for {resource_id}:\n")
    for entry in history:
        symbol = "✓" if entry.success else "✗"
        click.echo(f"{entry.timestamp.strftime('%Y-%m-%d %H:%M:%S')} {symbol} {entry.action} by {entry.user}@{entry.hostname}")
        if entry.error:
            click.secho(f"  Error: {entry.error}", fg="red")
        if entry.changes:
            click.echo("  Changes:")
            for name, change in entry.changes.items():
                click.echo(f"    {name}: {change.get('from')} → {change.get('to')}")
        click.echo()


@cli.group()
def values():
    """Inspect generated values kept by --values stored."""
    pass


@values.command("list")
@click.pass_context
def values_list(ctx):
    """List stored generated values."""
    with _open_store(ctx) as store:
        stored = store.list_values()

    if not stored:
        click.echo("No stored values.")
        return

    click.echo(f"{'KEY':<30} {'KIND':<6} {'VALUE':<38} {'CREATED'}")
    click.echo("-" * 90)
    for item in stored:
        click.echo(f"{item.key:<30} {item.kind:<6} {item.value:<38} {item.created_at.strftime('%Y-%m-%d %H:%M')}")


@values.command("forget")
@click.argument("key")
@click.pass_context
def values_forget(ctx, key: str):
    """Forget a stored value so the next run generates a new one."""
    with _open_store(ctx) as store:
        removed = store.forget_value(key)

    if not removed:
        click.secho(f"No stored value for {key}", fg="yellow")
        sys.exit(1)
    click.echo(f"Forgot {key}")


def _open_store(ctx):
    from pantry.state import Store
    return Store(ctx.obj.get("state_db") if ctx.obj else None)


def _make_values(ctx, mode: str, seed: Optional[str]) -> ValueProvider:
    if mode == "seeded":
        if seed is None:
            raise click.UsageError("--values seeded requires --seed (or PANTRY_SEED)")
        return SeededValues(seed)
    if mode == "stored":
        return StoredValues(_open_store(ctx))
    return RandomValues()


def _make_transport(host: Optional[str], user: Optional[str], key: Optional[str],
                    port: int, sudo: bool) -> Transport:
    if not host:
        return LocalTransport()

    from pantry.transport.ssh import SSHTransport

    click.echo(f"Connecting to {user or 'current_user'}@{host}:{port}...")
    try:
        return SSHTransport(host=host, port=port, user=user, key_file=key, sudo=sudo)
    except Exception as e:
        click.secho(f"SSH connection failed: {e}", fg="red")
        sys.exit(1)


@contextmanager
def _executor(ctx, recipe_file: str, host, user, key, port, sudo,
              values_mode: str, seed: Optional[str]) -> Iterator[Executor]:
    """Build an executor for the target with every recipe in recipe_file loaded."""
    try:
        recipes = load_recipes(recipe_file)
    except Exception as e:
        click.secho(f"Error loading recipe: {e}", fg="red")
        sys.exit(1)

    provider = _make_values(ctx, values_mode, seed)
    transport = _make_transport(host, user, key, port, sudo)

    try:
        with transport:
            executor = Executor(transport=transport, values=provider, config_file=recipe_file)
            for recipe in recipes:
                executor.load(recipe)
            yield executor
    finally:
        if isinstance(provider, StoredValues):
            provider.store.close()


def _display_errors(title: str, plan_result: PlanResult) -> None:
    if not plan_result.has_errors:
        return
    click.secho(title, fg="red")
    for resource_id, error in plan_result.errors.items():
        click.secho(f"  ! {resource_id}: {error}", fg="red")
    click.echo()


def _format_value(field: str, value) -> str:
    if field == "mode" and isinstance(value, int):
        return format(value, "04o")
    return str(value)


def _display_plan(resource_id: str, plan) -> None:
    logger.action(plan.action.value, resource_id)

    if plan.reason:
        click.echo(f"      reason: {plan.reason}")

    for change in plan.changes:
        click.echo(
            f"      {change.field}: {_format_value(change.field, change.from_value)}"
            f" → {_format_value(change.field, change.to_value)}"
        )

    click.echo()


def main():
    """Entry point for CLI."""
    cli()
