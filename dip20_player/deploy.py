from pathlib import Path
from typing import Optional, Sequence

import structlog

from dip20_player.candid import CandidArg, encode_args
from dip20_player.constants import DEPLOY_TIMEOUT
from dip20_player.dfx import Dfx
from dip20_player.exceptions import ProvisioningError
from dip20_player.exceptions.dfx import DfxError

log = structlog.get_logger(__name__)

DEPLOY_MODES = ("install", "reinstall", "upgrade")


class Deployer:
    """Build and install the token canister of the dfx project at `project_dir`."""

    def __init__(
        self, dfx: Dfx, canister: str, project_dir: Path, timeout: Optional[float] = DEPLOY_TIMEOUT
    ) -> None:
        self.dfx = dfx
        self.canister = canister
        self.project_dir = project_dir
        self.timeout = timeout

    def deploy(self, init_args: Sequence[CandidArg], mode: Optional[str] = None) -> str:
        """Deploy the canister and return its id.

        `mode` is passed on to ``dfx deploy --mode``; ``None`` lets dfx install or
        upgrade as it sees fit.

        :raises ProvisioningError: if the deployment or the id lookup fails.
        """
        if mode is not None and mode not in DEPLOY_MODES:
            raise ProvisioningError(
                f"Unknown deploy mode {mode!r}, expected one of {DEPLOY_MODES}"
            )

        argument = encode_args(init_args)
        log.debug("Init arguments", canister=self.canister, argument=argument[:200])
        try:
            self.dfx.deploy(
                self.canister,
                argument=argument,
                mode=mode,
                cwd=self.project_dir,
                timeout=self.timeout,
            )
            canister_id = self.dfx.canister_id(self.canister, cwd=self.project_dir)
        except DfxError as ex:
            raise ProvisioningError(f"Deploying canister '{self.canister}' failed: {ex}") from ex

        if not canister_id:
            raise ProvisioningError(f"dfx reported no id for canister '{self.canister}'")
        log.info("Canister deployed", canister=self.canister, canister_id=canister_id, mode=mode)
        return canister_id

    def lookup(self) -> str:
        """Return the id of an already deployed canister.

        :raises ProvisioningError: if the canister has not been created.
        """
        try:
            return self.dfx.canister_id(self.canister, cwd=self.project_dir)
        except DfxError as ex:
            raise ProvisioningError(f"Canister '{self.canister}' is not deployed: {ex}") from ex
