from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from dip20_player.constants import (
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_CANISTER_NAME,
    DEFAULT_DFX_BINARY,
    DEFAULT_GENESIS_AMOUNT,
)
from dip20_player.exceptions.config import SettingsConfigurationError
from dip20_player.utils.configuration.base import ConfigMapping

log = structlog.get_logger(__name__)


@dataclass
class EnvironmentConfig:
    """Everything a run needs to know about its surroundings.

    Built once by the CLI and passed explicitly to the objects that need it.
    """

    network: str
    mode: Optional[str] = None
    genesis_amount: int = DEFAULT_GENESIS_AMOUNT
    cap_id: Optional[str] = None
    interactive: bool = False
    dfx_binary: str = DEFAULT_DFX_BINARY
    call_timeout: Optional[float] = None
    project_dir: Path = field(default_factory=Path.cwd)

    def template_variables(self) -> dict:
        """Variables available when rendering a scenario definition."""
        return {
            "network": self.network,
            "mode": self.mode or "",
            "genesis_amount": self.genesis_amount,
            "cap_id": self.cap_id or "",
        }


class SettingsConfig(ConfigMapping):
    """Settings Configuration Setting interface and validator.

    Example scenario definition::

        >my_scenario.yaml
        version: 1
        ...
        settings:
          canister: token
          wallet: false
          call_timeout: 60
        ...
    """

    CONFIGURATION_ERROR = SettingsConfigurationError

    def __init__(self, loaded_definition: dict, environment: EnvironmentConfig) -> None:
        super(SettingsConfig, self).__init__(loaded_definition.get("settings") or {})
        self.environment = environment
        self.validate()

    def validate(self):
        self.assert_option(
            isinstance(self.wallet, bool),
            f"settings.wallet must be a boolean, not {self.wallet!r}",
        )
        call_timeout = self.dict.get("call_timeout", DEFAULT_CALL_TIMEOUT)
        self.assert_option(
            isinstance(call_timeout, (int, float)) and call_timeout > 0,
            f"settings.call_timeout must be a positive number, not {call_timeout!r}",
        )

    @property
    def canister(self) -> str:
        """Name of the token canister in the dfx project."""
        return self.dict.get("canister", DEFAULT_CANISTER_NAME)

    @property
    def wallet(self) -> bool:
        """Whether dfx should proxy calls through the cycles wallet."""
        return self.dict.get("wallet", False)

    @property
    def call_timeout(self) -> Optional[float]:
        """Per-call timeout. The command line value takes precedence."""
        if self.environment.call_timeout is not None:
            return self.environment.call_timeout
        return self.dict.get("call_timeout", DEFAULT_CALL_TIMEOUT)
