"""Test identities and their credential contexts.

A credential context is the ``HOME`` directory dfx reads its identity store
from. The deploying identity lives in the caller's own HOME; every ephemeral
identity (Alice, Bob, ...) gets a fresh temporary HOME for the duration of the
run, in which dfx generates a new key pair on first use.
"""
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import structlog

from dip20_player.candid import Principal
from dip20_player.constants import (
    DEFAULT_IDENTITY,
    DEFAULT_IDENTITY_ALIASES,
    DFX_IDENTITY_DIR,
    DFX_IDENTITY_PEM,
)
from dip20_player.dfx import Dfx
from dip20_player.exceptions import IdentityProvisioningError
from dip20_player.exceptions.dfx import DfxError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    name: str
    principal: Principal
    credential: Path
    #: HOME directory to run dfx in. ``None`` means the caller's own.
    home: Optional[Path] = None
    #: Named identity in the store at `home`. ``None`` means the selected one.
    dfx_identity: Optional[str] = None
    ephemeral: bool = False

    def __str__(self):
        return f"{self.name} ({self.principal})"


def credential_path(home: Path, dfx_identity: str) -> Path:
    return home.joinpath(*DFX_IDENTITY_DIR, dfx_identity, DFX_IDENTITY_PEM)


class IdentityProvisioner:
    """Create or load identities by name, at most once per run.

    `named` maps scenario names to identities of the caller's persistent dfx
    store (e.g. ``{"charlie": "Charlie"}``). The names in
    :data:`DEFAULT_IDENTITY_ALIASES` refer to the caller's selected identity.
    Everything else is provisioned ephemerally.

    With `store_only`, names are taken literally as identities of `named`, and
    anything else is refused: the command line addresses the dfx store directly,
    where `default` is just another stored identity.

    Use as a context manager, or call :meth:`close`, to discard the ephemeral
    credential contexts.
    """

    def __init__(
        self, dfx: Dfx, named: Optional[Mapping[str, str]] = None, store_only: bool = False
    ) -> None:
        self.dfx = dfx
        self.named = {key.lower(): value for key, value in (named or {}).items()}
        self.store_only = store_only
        self._identities: Dict[str, Identity] = {}
        self._scope: Optional[Path] = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __iter__(self):
        return iter(self._identities.values())

    def __contains__(self, name):
        return self._normalize(name) in self._identities

    def _normalize(self, name: str) -> str:
        name = str(name).strip().lower()
        if not self.store_only and name in DEFAULT_IDENTITY_ALIASES:
            return DEFAULT_IDENTITY
        return name

    @property
    def scope(self) -> Path:
        """Temporary directory holding this run's ephemeral credential contexts."""
        if self._scope is None:
            self._scope = Path(tempfile.mkdtemp(prefix="dip20-player-"))
            log.debug("Created identity scope", path=self._scope)
        return self._scope

    def get_or_create(self, name: str) -> Identity:
        key = self._normalize(name)
        if key not in self._identities:
            self._identities[key] = self._provision(key)
        return self._identities[key]

    def principal_of(self, name: str) -> Principal:
        return self.get_or_create(name).principal

    def _provision(self, name: str) -> Identity:
        if not self.dfx.available:
            raise IdentityProvisioningError(
                f"Cannot provision identity '{name}': '{self.dfx.binary}' is not installed."
            )
        if self.store_only and name not in self.named:
            raise IdentityProvisioningError(f"No identity '{name}' in the dfx identity store")
        try:
            if name == DEFAULT_IDENTITY and not self.store_only:
                identity = self._load_selected()
            elif name in self.named:
                identity = self._load_named(name, self.named[name])
            else:
                identity = self._create_ephemeral(name)
        except DfxError as ex:
            raise IdentityProvisioningError(f"Cannot provision identity '{name}': {ex}") from ex

        if not identity.principal:
            raise IdentityProvisioningError(f"dfx returned no principal for identity '{name}'")
        log.info(
            "Identity ready",
            name=identity.name,
            principal=identity.principal,
            ephemeral=identity.ephemeral,
        )
        return identity

    def _load_selected(self) -> Identity:
        selected = self.dfx.whoami()
        return Identity(
            name=DEFAULT_IDENTITY,
            principal=Principal(self.dfx.get_principal()),
            credential=credential_path(Path.home(), selected),
            dfx_identity=None,
        )

    def _load_named(self, name: str, dfx_identity: str) -> Identity:
        return Identity(
            name=name,
            principal=Principal(self.dfx.get_principal(identity=dfx_identity)),
            credential=credential_path(Path.home(), dfx_identity),
            dfx_identity=dfx_identity,
        )

    def _create_ephemeral(self, name: str) -> Identity:
        home = Path(tempfile.mkdtemp(prefix=f"{name}-", dir=self.scope))
        principal = self.dfx.get_principal(home=home)
        return Identity(
            name=name,
            principal=Principal(principal),
            credential=credential_path(home, DEFAULT_IDENTITY),
            home=home,
            ephemeral=True,
        )

    def close(self) -> None:
        if self._scope is not None:
            shutil.rmtree(self._scope, ignore_errors=True)
            log.debug("Removed identity scope", path=self._scope)
            self._scope = None
        self._identities = {
            key: identity for key, identity in self._identities.items() if not identity.ephemeral
        }
