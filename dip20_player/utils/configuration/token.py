import base64
import mimetypes
import pathlib
from typing import Optional, Tuple

import structlog

from dip20_player.candid import CandidArg, NatArg, PrincipalArg, TextArg
from dip20_player.constants import DEFAULT_GENESIS_AMOUNT
from dip20_player.exceptions.config import TokenConfigurationError
from dip20_player.utils.configuration.base import ConfigMapping

log = structlog.get_logger(__name__)


class TokenConfig(ConfigMapping):
    """Init parameters for the token canister.

    Example scenario definition section::

        >my_scenario.yaml
        version: 1
        ...
        token:
          logo_file: DIP20-logo.png
          name: DIP20 Token
          symbol: TKN
          decimals: 8
          total_supply: 1000000000
          fee: 0
          fee_to: default
        ...

    ..note::

        `logo` and `logo_file` are mutually exclusive. A logo file is embedded as
        a base64 data URL, a `logo` string is passed verbatim.
    """

    CONFIGURATION_ERROR = TokenConfigurationError

    def __init__(self, loaded_definition: dict, base_dir: pathlib.Path = None):
        super(TokenConfig, self).__init__(loaded_definition.get("token") or {})
        self.base_dir = base_dir or pathlib.Path.cwd()
        self.validate()

    def validate(self):
        self.assert_option(
            not ("logo" in self.dict and "logo_file" in self.dict),
            "Token settings ('logo', 'logo_file') are mutually exclusive.",
        )
        self.assert_option(
            0 <= self.decimals < 256, f"token.decimals must fit into nat8, not {self.decimals}"
        )
        self.assert_option(self.total_supply >= 0, "token.total_supply must not be negative")
        self.assert_option(self.fee >= 0, "token.fee must not be negative")

    @property
    def name(self) -> str:
        return str(self.dict.get("name", "DIP20 Token"))

    @property
    def symbol(self) -> str:
        return str(self.dict.get("symbol", "TKN"))

    @property
    def decimals(self) -> int:
        return int(self.dict.get("decimals", 8))

    @property
    def total_supply(self) -> int:
        return int(self.dict.get("total_supply", DEFAULT_GENESIS_AMOUNT))

    @property
    def fee(self) -> int:
        return int(self.dict.get("fee", 0))

    @property
    def owner(self) -> str:
        """Identity name owning the genesis supply."""
        return str(self.dict.get("owner", "default"))

    @property
    def fee_to(self) -> str:
        """Identity name collecting fees."""
        return str(self.dict.get("fee_to", self.owner))

    @property
    def logo_file(self) -> Optional[pathlib.Path]:
        logo_file = self.dict.get("logo_file")
        if logo_file is None:
            return None
        path = pathlib.Path(logo_file)
        return path if path.is_absolute() else self.base_dir.joinpath(path)

    @property
    def logo(self) -> str:
        """The logo init argument.

        :raises TokenConfigurationError: if `logo_file` is set but cannot be read.
        """
        if self.logo_file is None:
            return str(self.dict.get("logo", ""))
        try:
            data = self.logo_file.read_bytes()
        except OSError as ex:
            raise TokenConfigurationError(f"Cannot read token logo {self.logo_file}: {ex}") from ex
        mime, _ = mimetypes.guess_type(self.logo_file.name)
        # Deployed DIP20 tokens historically label every logo as jpeg.
        mime = mime or "image/jpeg"
        return f"data:{mime};base64,{base64.b64encode(data).decode()}"

    def init_args(self, owner: str, fee_to: str, cap_id: str) -> Tuple[CandidArg, ...]:
        """Constructor arguments, in the order the canister's ``init`` expects them."""
        return (
            TextArg(self.logo),
            TextArg(self.name),
            TextArg(self.symbol),
            NatArg(self.decimals, bits=8),
            NatArg(self.total_supply),
            PrincipalArg(owner),
            NatArg(self.fee),
            PrincipalArg(fee_to),
            PrincipalArg(cap_id),
        )
