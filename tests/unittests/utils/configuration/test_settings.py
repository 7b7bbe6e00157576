import pytest

from dip20_player.exceptions.config import SettingsConfigurationError
from dip20_player.utils.configuration.settings import EnvironmentConfig, SettingsConfig

dummy_env = EnvironmentConfig(network="local")


class TestEnvironmentConfig:
    def test_template_variables(self):
        env = EnvironmentConfig(network="ic", genesis_amount=5, mode="reinstall")
        assert env.template_variables() == {
            "network": "ic",
            "mode": "reinstall",
            "genesis_amount": 5,
            "cap_id": "",
        }

    def test_defaults(self):
        assert dummy_env.genesis_amount == 1_000_000_000
        assert not dummy_env.interactive
        assert dummy_env.dfx_binary == "dfx"


class TestSettingsConfig:
    @pytest.mark.parametrize(
        "key, expected", [("canister", "token"), ("wallet", False), ("call_timeout", 120)]
    )
    def test_class_returns_expected_default_for_key(self, key, expected, minimal_definition_dict):
        """If supported keys are absent, sensible defaults are returned for them when accessing
        them as a class attribute."""
        config = SettingsConfig(minimal_definition_dict, dummy_env)
        assert getattr(config, key) == expected

    def test_values_from_the_definition(self, minimal_definition_dict):
        minimal_definition_dict["settings"] = {
            "canister": "dip20",
            "wallet": True,
            "call_timeout": 30,
        }
        config = SettingsConfig(minimal_definition_dict, dummy_env)
        assert config.canister == "dip20"
        assert config.wallet is True
        assert config.call_timeout == 30

    def test_command_line_call_timeout_takes_precedence(self, minimal_definition_dict):
        minimal_definition_dict["settings"] = {"call_timeout": 30}
        env = EnvironmentConfig(network="local", call_timeout=5)
        assert SettingsConfig(minimal_definition_dict, env).call_timeout == 5

    @pytest.mark.parametrize(
        "settings", [{"wallet": "yes"}, {"call_timeout": 0}, {"call_timeout": "soon"}]
    )
    def test_invalid_settings_raise(self, settings, minimal_definition_dict):
        minimal_definition_dict["settings"] = settings
        with pytest.raises(SettingsConfigurationError):
            SettingsConfig(minimal_definition_dict, dummy_env)
