import base64

import pytest

from dip20_player.candid import NatArg, PrincipalArg, TextArg
from dip20_player.exceptions.config import TokenConfigurationError
from dip20_player.utils.configuration.base import ConfigMapping
from dip20_player.utils.configuration.token import TokenConfig


class TestTokenConfig:
    def test_is_subclass_of_config_mapping(self, minimal_definition_dict, tmp_path):
        """The class is a subclass of :class:`ConfigMapping`."""
        assert isinstance(TokenConfig(minimal_definition_dict, tmp_path), ConfigMapping)

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("name", "DIP20 Token"),
            ("symbol", "TKN"),
            ("decimals", 8),
            ("total_supply", 1_000_000_000),
            ("fee", 0),
            ("owner", "default"),
            ("fee_to", "default"),
            ("logo_file", None),
        ],
    )
    def test_class_returns_expected_default_for_key(self, key, expected, tmp_path):
        """If supported keys are absent, sensible defaults are returned for them when accessing
        them as a class attribute."""
        assert getattr(TokenConfig({}, tmp_path), key) == expected

    def test_fee_to_defaults_to_the_owner(self, tmp_path):
        assert TokenConfig({"token": {"owner": "alice"}}, tmp_path).fee_to == "alice"

    def test_passing_mutual_exclusive_keys_raises_configuration_error(self, tmp_path):
        with pytest.raises(TokenConfigurationError, match="mutually exclusive"):
            TokenConfig({"token": {"logo": "x", "logo_file": "logo.png"}}, tmp_path)

    @pytest.mark.parametrize(
        "token", [{"decimals": 256}, {"decimals": -1}, {"total_supply": -5}, {"fee": -1}]
    )
    def test_invalid_values_raise(self, token, tmp_path):
        with pytest.raises(TokenConfigurationError):
            TokenConfig({"token": token}, tmp_path)

    def test_logo_literal(self, tmp_path):
        assert TokenConfig({"token": {"logo": "data:,"}}, tmp_path).logo == "data:,"

    @pytest.mark.parametrize(
        "file_name, mime", [("logo.png", "image/png"), ("logo.unknownext", "image/jpeg")]
    )
    def test_logo_file_is_embedded_as_data_url(self, file_name, mime, tmp_path):
        tmp_path.joinpath(file_name).write_bytes(b"\x01\x02")
        config = TokenConfig({"token": {"logo_file": file_name}}, tmp_path)

        assert config.logo_file == tmp_path.joinpath(file_name)
        encoded = base64.b64encode(b"\x01\x02").decode()
        assert config.logo == f"data:{mime};base64,{encoded}"

    def test_unreadable_logo_file_raises(self, tmp_path):
        config = TokenConfig({"token": {"logo_file": "missing.png"}}, tmp_path)
        with pytest.raises(TokenConfigurationError, match="Cannot read token logo"):
            config.logo

    def test_init_args_are_in_constructor_order(self, tmp_path):
        config = TokenConfig(
            {"token": {"logo": "L", "name": "N", "symbol": "S", "total_supply": 9, "fee": 1}},
            tmp_path,
        )
        assert config.init_args(owner="o", fee_to="f", cap_id="c") == (
            TextArg("L"),
            TextArg("N"),
            TextArg("S"),
            NatArg(8, bits=8),
            NatArg(9),
            PrincipalArg("o"),
            NatArg(1),
            PrincipalArg("f"),
            PrincipalArg("c"),
        )
