import functools
import json
import platform
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import structlog

from dip20_player import __version__
from dip20_player.candid import parse_typed_arg
from dip20_player.client import ServiceClient
from dip20_player.constants import (
    DEFAULT_CANISTER_NAME,
    DEFAULT_DFX_BINARY,
    DEFAULT_GENESIS_AMOUNT,
    DEFAULT_IDENTITY,
)
from dip20_player.definition import ScenarioDefinition, builtin_scenario_path
from dip20_player.dfx import Dfx
from dip20_player.exceptions import ScenarioAssertionError, ScenarioError
from dip20_player.exceptions.config import ConfigurationError
from dip20_player.exceptions.dfx import DfxError
from dip20_player.identity import IdentityProvisioner
from dip20_player.runner import ScenarioRunner
from dip20_player.tasks import token as token_tasks
from dip20_player.tasks.base import collect_tasks
from dip20_player.utils.configuration.settings import EnvironmentConfig
from dip20_player.utils.logs import configure_logging, construct_log_file_name

import dip20_player.tasks

log = structlog.get_logger(__name__)

DEFAULT_DATA_PATH = Path.home().joinpath(".dip20-player")


def configure_logging_for_subcommand(log_file_name: Path):
    click.secho(f"Writing log to {log_file_name}", fg="yellow", err=True)
    configure_logging({"": "INFO", "dip20_player": "DEBUG"}, log_file=log_file_name)


def data_path_option(func):
    """Decorator for adding '--data-path' to subcommands."""

    @click.option(
        "--data-path",
        default=DEFAULT_DATA_PATH,
        type=click.Path(exists=False, dir_okay=True, file_okay=False),
        show_default=True,
        help="Directory log files are written to.",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def dfx_option(func):
    """Decorator for adding '--dfx' to subcommands."""

    @click.option(
        "--dfx",
        "dfx_binary",
        default=DEFAULT_DFX_BINARY,
        envvar="DFX_BINARY",
        show_default=True,
        help="The dfx executable to use.",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


@click.group(invoke_without_command=True, context_settings={"max_content_width": 120})
@click.pass_context
def main(ctx):
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command(name="run")
@click.argument("network")
@click.argument("mode", type=click.Choice(["reinstall"]), required=False)
@click.option(
    "--scenario",
    "scenario_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Scenario definition to run. Defaults to the builtin healthcheck.",
)
@click.option("--cap-id", envvar="CAP_ID", default=None, help="Principal of the Cap router.")
@click.option(
    "--genesis-amount",
    envvar="GENESIS_AMT",
    type=click.IntRange(min=0),
    default=DEFAULT_GENESIS_AMOUNT,
    show_default=True,
    help="Initial token supply, minted to the deploying identity.",
)
@click.option(
    "--interactive/--no-interactive",
    default=lambda: sys.stdin.isatty(),
    help="Allow prompting for a missing Cap router. [default: auto-detect]",
)
@click.option(
    "--call-timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds to wait for a single canister call.",
)
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="The dfx project containing the token canister.",
)
@dfx_option
@data_path_option
def run(
    network,
    mode,
    scenario_file,
    cap_id,
    genesis_amount,
    interactive,
    call_timeout,
    project_dir,
    dfx_binary,
    data_path,
):
    """Deploy the token canister to NETWORK and run a scenario against it.

    Pass `reinstall` as MODE to wipe the canister's state first.
    """
    scenario_path = Path(scenario_file).absolute() if scenario_file else builtin_scenario_path()
    data_path = Path(data_path)
    log_file_name = construct_log_file_name("run", data_path, scenario_path.stem)
    configure_logging_for_subcommand(log_file_name)

    environment = EnvironmentConfig(
        network=network,
        mode=mode,
        genesis_amount=genesis_amount,
        cap_id=cap_id,
        interactive=interactive,
        dfx_binary=dfx_binary,
        call_timeout=call_timeout,
        project_dir=Path(project_dir).absolute(),
    )
    run_(environment, scenario_path)


def run_(environment: EnvironmentConfig, scenario_path: Path) -> None:
    """Execute the scenario at `scenario_path`.

    Calls :func:`sys.exit` when done, with the following status codes:

        Exit code 1x
        An identity, the Cap router or the canister could not be provisioned,
        or the player itself crashed.

        Exit code 2x
        The scenario definition is invalid, or a canister call failed or was
        rejected.

        Exit code 3x
        A value read from the canister did not match the scenario's expectation.
    """
    log.info("DIP20 Scenario Player version:", version=__version__)

    # Dynamically import valid Task classes from the dip20_player.tasks package.
    collect_tasks(dip20_player.tasks)

    try:
        definition = ScenarioDefinition(scenario_path, environment)
        dfx = Dfx(
            environment.network,
            binary=environment.dfx_binary,
            wallet=definition.settings.wallet,
        )
        with IdentityProvisioner(dfx, named=definition.identities.named) as identities:
            click.secho("Identities", bold=True)
            for name in [DEFAULT_IDENTITY, *definition.identities.names]:
                click.echo(f"  {identities.get_or_create(name)}")

            runner = ScenarioRunner(definition, environment, identities, dfx)
            runner.run_scenario()
    except ScenarioAssertionError as ex:
        log.error("Run finished", result="assertion errors", message=str(ex))
        click.secho(f"Assertion mismatch: {ex}", fg="red", err=True)
        sys.exit(ex.exit_code)
    except ScenarioError as ex:
        log.error("Run finished", result="scenario error", message=str(ex))
        click.secho(f"Error: {ex}", fg="red", err=True)
        sys.exit(ex.exit_code)
    except ConfigurationError as ex:
        log.error("Run finished", result="invalid scenario", message=str(ex))
        click.secho(f"Invalid scenario {scenario_path.name}: {ex}", fg="red", err=True)
        sys.exit(20)
    except Exception as ex:
        log.exception("Exception while running scenario")
        click.secho(f"Error running scenario {scenario_path.name}: {ex}", fg="red", err=True)
        sys.exit(getattr(ex, "exit_code", 10))
    else:
        log.info("Run finished", result="success")
        click.secho(f"Scenario {definition.name} successful", fg="green")
        sys.exit(0)


@main.command(name="identities")
@click.option("--network", default="local", show_default=True)
@dfx_option
@data_path_option
def identities_(network, dfx_binary, data_path):
    """Show the principals of the identities in the local dfx store."""
    configure_logging_for_subcommand(construct_log_file_name("identities", Path(data_path)))
    dfx = Dfx(network, binary=dfx_binary)
    try:
        names = dfx.list_identities()
        selected = dfx.whoami()
        store = {name: name for name in names}
        with IdentityProvisioner(dfx, named=store, store_only=True) as provisioner:
            for name in names:
                marker = "*" if name == selected else " "
                click.echo(f"{marker} {name}: {provisioner.principal_of(name)}")
    except (DfxError, ScenarioError) as ex:
        click.secho(str(ex), fg="red", err=True)
        sys.exit(getattr(ex, "exit_code", 11))


@main.command(name="call")
@click.argument("network")
@click.argument("method")
@click.argument("args", nargs=-1)
@click.option(
    "--as",
    "caller_name",
    default=None,
    help="Identity from the local dfx store to call as. Defaults to the selected one.",
)
@click.option("--query", "is_query", is_flag=True, default=False, help="Issue a query call.")
@click.option("--canister", default=DEFAULT_CANISTER_NAME, show_default=True)
@click.option("--call-timeout", type=click.FloatRange(min=0, min_open=True), default=None)
@click.option("--wallet/--no-wallet", default=False, show_default=True)
@dfx_option
@data_path_option
def call(
    network: str,
    method: str,
    args: Tuple[str, ...],
    caller_name: str,
    is_query: bool,
    canister: str,
    call_timeout: Optional[float],
    wallet: bool,
    dfx_binary: str,
    data_path: str,
):
    """Call METHOD of the token canister on NETWORK.

    ARGS are given as TYPE:VALUE, where TYPE is one of principal, nat, nat8,
    nat16, nat32, nat64, text or blob (hex). Principals may name an identity of
    the local dfx store, e.g. `principal:Alice`.
    """
    configure_logging_for_subcommand(construct_log_file_name("call", Path(data_path)))
    dfx = Dfx(network, binary=dfx_binary, wallet=wallet)
    try:
        names = set(dfx.list_identities())
        store = {name: name for name in names}
        with IdentityProvisioner(dfx, named=store, store_only=True) as provisioner:

            def resolve_principal(value):
                return str(provisioner.principal_of(value)) if value in names else value

            call_args = [parse_typed_arg(arg, resolve_principal) for arg in args]
            client = ServiceClient(dfx, canister, call_timeout=call_timeout)
            caller = provisioner.get_or_create(caller_name or dfx.whoami())
            request = client.query if is_query else client.update
            value = request(caller, method, call_args).unwrap(method, caller)
    except (DfxError, ScenarioError, ConfigurationError) as ex:
        click.secho(str(ex), fg="red", err=True)
        sys.exit(getattr(ex, "exit_code", 20))
    click.echo(token_tasks.describe(value))


@main.command(name="version", help="Show versions of dip20_player and its environment.")
@click.option(
    "--short", is_flag=True, help="Only display dip20_player version string.", default=False
)
@dfx_option
def version(short, dfx_binary):
    if short:
        click.secho(message=__version__)
        return
    dfx = Dfx("local", binary=dfx_binary)
    try:
        dfx_version = dfx.invoke(["--version"])
    except DfxError:
        dfx_version = None
    versions = {
        "dip20_player": __version__,
        "dfx": dfx_version,
        "python_implementation": platform.python_implementation(),
        "python_version": platform.python_version(),
        "system": f"{platform.system()} {platform.machine()} {platform.release()}",
    }
    click.secho(message=json.dumps(versions, indent=2))


if __name__ == "__main__":
    main()  # pylint: disable=no-value-for-parameter
