import pytest

from dip20_player.exceptions.config import IdentityConfigurationError
from dip20_player.utils.configuration.identities import IdentitiesConfig


class TestIdentitiesConfig:
    def test_names_keep_declaration_order(self):
        config = IdentitiesConfig({"identities": {"alice": {}, "bob": None, "charlie": {}}})
        assert config.names == ["alice", "bob", "charlie"]

    def test_named_identities(self):
        config = IdentitiesConfig(
            {
                "identities": {
                    "alice": {"store": "ephemeral"},
                    "charlie": {"store": "named", "identity": "Charlie"},
                }
            }
        )
        assert config.named == {"charlie": "Charlie"}

    def test_missing_section_means_no_identities(self):
        assert IdentitiesConfig({}).names == []

    @pytest.mark.parametrize(
        "options",
        [{"store": "hardware"}, {"store": "named"}, "ephemeral"],
    )
    def test_invalid_entries_raise(self, options):
        with pytest.raises(IdentityConfigurationError):
            IdentitiesConfig({"identities": {"alice": options}})
