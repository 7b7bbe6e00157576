from pathlib import Path
from unittest.mock import PropertyMock, patch

import pytest

from dip20_player.dfx import Dfx
from dip20_player.exceptions import IdentityProvisioningError
from dip20_player.identity import IdentityProvisioner


class TestIdentityProvisioner:
    def test_default_identity_is_the_selected_one(self, identities, fake_dfx):
        identity = identities.get_or_create("default")

        assert identity.name == "default"
        assert identity.principal == fake_dfx.principal_of_identity("default")
        assert identity.home is None
        assert identity.dfx_identity is None
        assert not identity.ephemeral
        assert identity.credential == Path.home().joinpath(
            ".config", "dfx", "identity", "default", "identity.pem"
        )

    @pytest.mark.parametrize("alias", ["owner", "Default", " OWNER "])
    def test_aliases_refer_to_the_default_identity(self, identities, alias):
        assert identities.get_or_create(alias) is identities.get_or_create("default")

    def test_ephemeral_identities_get_their_own_home(self, identities):
        alice = identities.get_or_create("Alice")
        bob = identities.get_or_create("bob")

        assert alice.name == "alice"
        assert alice.ephemeral and bob.ephemeral
        assert alice.home != bob.home
        assert alice.home.parent == identities.scope
        assert alice.credential == alice.home.joinpath(
            ".config", "dfx", "identity", "default", "identity.pem"
        )
        assert alice.principal != bob.principal

    def test_identities_are_provisioned_once(self, identities, fake_dfx):
        first = identities.get_or_create("alice")
        calls = len(fake_dfx.commands)

        assert identities.get_or_create("ALICE") is first
        assert identities.principal_of("alice") == first.principal
        assert len(fake_dfx.commands) == calls
        assert "alice" in identities

    def test_named_identities_are_loaded_from_the_store(self, identities, fake_dfx):
        charlie = identities.get_or_create("charlie")

        assert charlie.dfx_identity == "Charlie"
        assert charlie.home is None
        assert not charlie.ephemeral
        assert charlie.principal == fake_dfx.principal_of_identity("Charlie")

    def test_store_only_takes_default_literally(self, dfx, fake_dfx):
        fake_dfx.selected = "Charlie"
        store = {name: name for name in fake_dfx.identities}
        with IdentityProvisioner(dfx, named=store, store_only=True) as provisioner:
            default = provisioner.get_or_create("default")
            charlie = provisioner.get_or_create("Charlie")

        assert default.dfx_identity == "default"
        assert default.principal == fake_dfx.principal_of_identity("default")
        assert charlie.principal == fake_dfx.principal_of_identity("Charlie")
        assert default.principal != charlie.principal

    @pytest.mark.parametrize("name", ["owner", "alice"])
    def test_store_only_refuses_unknown_names(self, dfx, fake_dfx, name):
        store = {name: name for name in fake_dfx.identities}
        with IdentityProvisioner(dfx, named=store, store_only=True) as provisioner:
            with pytest.raises(IdentityProvisioningError, match="No identity"):
                provisioner.get_or_create(name)
        assert all(home is None for _, home in fake_dfx.commands)

    def test_close_discards_ephemeral_identities(self, dfx):
        provisioner = IdentityProvisioner(dfx)
        alice = provisioner.get_or_create("alice")
        provisioner.get_or_create("default")
        scope = provisioner.scope

        assert alice.home.is_dir()
        provisioner.close()

        assert not scope.exists()
        assert "alice" not in provisioner
        assert "default" in provisioner
        assert [identity.name for identity in provisioner] == ["default"]

    def test_context_manager_closes(self, dfx):
        with IdentityProvisioner(dfx) as provisioner:
            home = provisioner.get_or_create("bob").home
        assert not home.exists()

    def test_missing_dfx_raises(self, fake_dfx):
        dfx = Dfx("local", binary="no-such-dfx", runner=fake_dfx)
        with patch.object(Dfx, "available", new_callable=PropertyMock, return_value=False):
            with pytest.raises(IdentityProvisioningError, match="not installed"):
                IdentityProvisioner(dfx).get_or_create("alice")

    def test_dfx_failure_raises_provisioning_error(self, dfx, fake_dfx):
        fake_dfx.selected = "broken"
        fake_dfx.identities = []
        original = fake_dfx._identity

        def failing_identity(command, key):
            if command == "get-principal":
                return fake_dfx._fail("Identity broken does not exist")
            return original(command, key)

        fake_dfx._identity = failing_identity
        with IdentityProvisioner(dfx) as provisioner:
            with pytest.raises(IdentityProvisioningError, match="does not exist"):
                provisioner.get_or_create("default")

    def test_empty_principal_raises(self, dfx, fake_dfx):
        fake_dfx._identity = lambda command, key: fake_dfx._ok("")
        with IdentityProvisioner(dfx) as provisioner:
            with pytest.raises(IdentityProvisioningError, match="no principal"):
                provisioner.get_or_create("alice")
