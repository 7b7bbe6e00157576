"""Thin wrapper around the ``dfx`` command line tool.

Every interaction with the toolchain is built and executed here. Which identity a
command runs as is controlled by two knobs:

    * ``home``: the ``HOME`` directory dfx looks up its identity store in. Ephemeral
      identities each get their own, so their key material is never shared.
    * ``identity``: a named identity from the store (``dfx --identity <name>``).
"""
import shutil
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from dip20_player.constants import DEFAULT_DFX_BINARY
from dip20_player.exceptions.dfx import DfxError, DfxNotFound, DfxTimeout
from dip20_player.utils.process import TimeoutExpired, run_command

log = structlog.get_logger(__name__)


class Dfx:
    def __init__(
        self,
        network: str,
        binary: str = DEFAULT_DFX_BINARY,
        wallet: bool = False,
        runner: Callable = run_command,
    ) -> None:
        self.network = network
        self.binary = binary
        self.wallet = wallet
        self._runner = runner

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.binary} network={self.network}>"

    @property
    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def invoke(
        self,
        args: List[str],
        home: Optional[Path] = None,
        identity: Optional[str] = None,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Run ``dfx <args>`` and return its stripped standard output.

        :raises DfxNotFound: if the executable is missing.
        :raises DfxTimeout: if the command ran longer than `timeout` seconds.
        :raises DfxError: if the command exited with a non-zero status.
        """
        command = [self.binary]
        if identity:
            command += ["--identity", identity]
        command += args
        env = {"HOME": str(home)} if home else None

        try:
            completed = self._runner(
                command, env_overrides=env, cwd=str(cwd) if cwd else None, timeout=timeout
            )
        except FileNotFoundError as ex:
            raise DfxNotFound(command) from ex
        except TimeoutExpired as ex:
            raise DfxTimeout(command, timeout) from ex

        if completed.returncode != 0:
            raise DfxError(
                command,
                f"exited with status {completed.returncode}",
                returncode=completed.returncode,
                stderr=completed.stderr,
            )
        return (completed.stdout or "").strip()

    def _wallet_flag(self) -> List[str]:
        return [] if self.wallet else ["--no-wallet"]

    def whoami(self, home: Optional[Path] = None) -> str:
        return self.invoke(["identity", "whoami"], home=home)

    def get_principal(self, home: Optional[Path] = None, identity: Optional[str] = None) -> str:
        return self.invoke(["identity", "get-principal"], home=home, identity=identity)

    def list_identities(self, home: Optional[Path] = None) -> List[str]:
        output = self.invoke(["identity", "list"], home=home)
        return [line.strip(" *") for line in output.splitlines() if line.strip()]

    def canister_id(self, canister: str, cwd: Optional[Path] = None) -> str:
        return self.invoke(["canister", "--network", self.network, "id", canister], cwd=cwd)

    def deploy(
        self,
        canister: str,
        argument: Optional[str] = None,
        mode: Optional[str] = None,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
    ) -> str:
        args = ["deploy", *self._wallet_flag(), "--network", self.network, canister]
        if argument is not None:
            args.append(f"--argument={argument}")
        if mode:
            args += ["--mode", mode]
        log.info("Deploying canister", canister=canister, network=self.network, mode=mode)
        return self.invoke(args, cwd=cwd, timeout=timeout)

    def call(
        self,
        canister: str,
        method: str,
        argument: str,
        query: bool = False,
        home: Optional[Path] = None,
        identity: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        args = ["canister", "--network", self.network, *self._wallet_flag(), "call"]
        if query:
            args.append("--query")
        args += [canister, method, argument]
        return self.invoke(args, home=home, identity=identity, timeout=timeout)
