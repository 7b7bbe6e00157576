from typing import Dict, List

import structlog

from dip20_player.exceptions.config import IdentityConfigurationError
from dip20_player.utils.configuration.base import ConfigMapping

log = structlog.get_logger(__name__)


class IdentitiesConfig(ConfigMapping):
    """The identities a scenario acts as.

    Each entry is either ``ephemeral`` (a fresh key pair per run, the default)
    or ``named``, loading an identity from the caller's dfx identity store.

    Example scenario definition section::

        >my_scenario.yaml
        version: 1
        ...
        identities:
          alice: {}
          bob: {store: ephemeral}
          charlie: {store: named, identity: Charlie}
        ...
    """

    CONFIGURATION_ERROR = IdentityConfigurationError
    STORES = ("ephemeral", "named")

    def __init__(self, loaded_definition: dict) -> None:
        super(IdentitiesConfig, self).__init__(loaded_definition.get("identities") or {})
        self.validate()

    def validate(self):
        for name, options in self.dict.items():
            options = options or {}
            self.assert_option(isinstance(options, dict), f"identities.{name} must be a mapping")
            store = options.get("store", "ephemeral")
            self.assert_option(
                store in self.STORES, f"identities.{name}.store must be one of {self.STORES}"
            )
            if store == "named":
                self.assert_option(
                    options.get("identity"), f"identities.{name} needs an 'identity' to load"
                )

    @property
    def names(self) -> List[str]:
        return [str(name) for name in self.dict]

    @property
    def named(self) -> Dict[str, str]:
        """Map of scenario name to dfx identity name for persistent identities."""
        return {
            str(name): str(options["identity"])
            for name, options in self.dict.items()
            if options and options.get("store") == "named"
        }
