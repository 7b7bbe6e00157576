from dip20_player.utils.configuration.identities import IdentitiesConfig
from dip20_player.utils.configuration.scenario import ScenarioConfig
from dip20_player.utils.configuration.settings import EnvironmentConfig, SettingsConfig
from dip20_player.utils.configuration.token import TokenConfig

__all__ = [
    "EnvironmentConfig",
    "IdentitiesConfig",
    "ScenarioConfig",
    "SettingsConfig",
    "TokenConfig",
]
