"""Resolving the Cap history router the token canister logs its transactions to.

The canister's ``init`` requires the principal of a Cap router. Where it comes
from is decided by a chain of strategies, tried in order until one yields an id:

    1. :class:`ExplicitCapId` - given on the command line or via ``CAP_ID``.
    2. :class:`KnownNetworkCapId` - the public router of a known network (``ic``).
    3. :class:`DiscoveredCapId` - ``dfx canister id ic-history-router`` in ``./cap``.
    4. :class:`PromptedCapId` - ask the operator to paste an id.
    5. :class:`ProvisionedCapId` - offer to deploy a local router.

Asking the operator and deploying a router are separate strategies; both only
take part in interactive runs, so automated runs never block on input.
"""
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

import click
import structlog

from dip20_player.constants import (
    CAP_CANISTER_NAME,
    CAP_PROJECT_DIR,
    DEPLOY_TIMEOUT,
    MAINNET_CAP_ID,
    MAINNET_NETWORK,
)
from dip20_player.dfx import Dfx
from dip20_player.exceptions import CapResolutionError
from dip20_player.exceptions.dfx import DfxError
from dip20_player.utils.configuration.settings import EnvironmentConfig
from dip20_player.utils.process import TimeoutExpired, run_command

log = structlog.get_logger(__name__)

KNOWN_CAP_IDS = {MAINNET_NETWORK: MAINNET_CAP_ID}


class CapStrategy:
    name = "abstract"

    def resolve(self) -> Optional[str]:
        raise NotImplementedError

    def __repr__(self):
        return f"<{self.__class__.__name__}>"


class ExplicitCapId(CapStrategy):
    name = "explicit"

    def __init__(self, cap_id: Optional[str]) -> None:
        self.cap_id = cap_id

    def resolve(self) -> Optional[str]:
        return self.cap_id or None


class KnownNetworkCapId(CapStrategy):
    name = "known network"

    def __init__(self, network: str, known: Mapping[str, str] = None) -> None:
        self.network = network
        self.known = KNOWN_CAP_IDS if known is None else known

    def resolve(self) -> Optional[str]:
        return self.known.get(self.network)


class DiscoveredCapId(CapStrategy):
    """Look up a router deployed from the ``cap`` sub-project."""

    name = "discovery"

    def __init__(self, dfx: Dfx, cap_dir: Path) -> None:
        self.dfx = dfx
        self.cap_dir = cap_dir

    def resolve(self) -> Optional[str]:
        if not self.cap_dir.is_dir():
            log.debug("No cap project directory", path=str(self.cap_dir))
            return None
        try:
            return self.dfx.canister_id(CAP_CANISTER_NAME, cwd=self.cap_dir) or None
        except DfxError as ex:
            log.debug("Cap router not discovered", error=str(ex))
            return None


class PromptedCapId(CapStrategy):
    name = "prompt"

    def __init__(self, prompt: Callable = click.prompt) -> None:
        self.prompt = prompt

    def resolve(self) -> Optional[str]:
        click.secho("Warning: The Cap Service is required.", fg="yellow", err=True)
        answer = self.prompt(
            "Enter the local Cap canister ID (or nothing to continue to Cap setup)",
            default="",
            show_default=False,
        )
        return answer.strip() or None


class ProvisionedCapId(CapStrategy):
    """Deploy a local Cap router after the operator agreed to it.

    Unlike the other strategies, a failure here is not a miss but an error: the
    operator asked for a deployment and it did not happen.
    """

    name = "provision"

    def __init__(
        self,
        dfx: Dfx,
        project_dir: Path,
        confirm: Callable = click.confirm,
        runner: Callable = run_command,
    ) -> None:
        self.dfx = dfx
        self.project_dir = project_dir
        self.confirm = confirm
        self.runner = runner

    @property
    def cap_dir(self) -> Path:
        return self.project_dir.joinpath(CAP_PROJECT_DIR)

    def resolve(self) -> Optional[str]:
        if not self.confirm(
            f"Do you want to deploy the Cap canister on the {self.dfx.network} network?",
            default=True,
        ):
            return None

        log.info("Provisioning Cap router", network=self.dfx.network)
        try:
            completed = self.runner(
                ["git", "submodule", "update", "--init", "--recursive"],
                cwd=str(self.project_dir),
                timeout=DEPLOY_TIMEOUT,
            )
        except (OSError, TimeoutExpired) as ex:
            raise CapResolutionError(f"Cannot fetch the cap submodule: {ex}") from ex
        if completed.returncode != 0:
            raise CapResolutionError(
                f"Cannot fetch the cap submodule: {completed.stderr.strip()}"
            )

        try:
            self.dfx.deploy(CAP_CANISTER_NAME, cwd=self.cap_dir, timeout=DEPLOY_TIMEOUT)
            return self.dfx.canister_id(CAP_CANISTER_NAME, cwd=self.cap_dir)
        except DfxError as ex:
            raise CapResolutionError(f"Deploying the Cap router failed: {ex}") from ex


def default_strategies(environment: EnvironmentConfig, dfx: Dfx) -> List[CapStrategy]:
    strategies: List[CapStrategy] = [
        ExplicitCapId(environment.cap_id),
        KnownNetworkCapId(environment.network),
        DiscoveredCapId(dfx, environment.project_dir.joinpath(CAP_PROJECT_DIR)),
    ]
    if environment.interactive:
        strategies += [PromptedCapId(), ProvisionedCapId(dfx, environment.project_dir)]
    return strategies


def resolve_cap_id(strategies: Iterable[CapStrategy]) -> str:
    """Return the first id any of `strategies` yields.

    :raises CapResolutionError: if none of them does.
    """
    tried = []
    for strategy in strategies:
        cap_id = strategy.resolve()
        tried.append(strategy.name)
        if cap_id:
            log.info("Cap router resolved", cap_id=cap_id, strategy=strategy.name)
            return cap_id
    raise CapResolutionError(
        f"The Cap canister is required, but none could be established (tried: {', '.join(tried)})."
    )
