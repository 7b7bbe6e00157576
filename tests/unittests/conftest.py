import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import PropertyMock, patch

import pytest
import yaml

import dip20_player.tasks
from dip20_player.candid import Principal, decode_args
from dip20_player.dfx import Dfx
from dip20_player.identity import IdentityProvisioner
from dip20_player.tasks.base import collect_tasks
from dip20_player.utils.configuration.settings import EnvironmentConfig
from dip20_player.utils.logs import configure_logging

TOKEN_CANISTER_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"
CAP_ROUTER_ID = "ryjl3-tyaaa-aaaaa-aaaba-cai"


class FakeDfx:
    """Stand-in for the ``dfx`` executable backed by an in-memory DIP20 ledger.

    Instances are passed to :class:`Dfx` as its `runner`. Every invocation is
    recorded in :attr:`commands` as ``(argv, HOME)``.
    """

    def __init__(self):
        self.commands: List[Tuple[List[str], Optional[str]]] = []
        self.identities = ["anonymous", "default", "Charlie"]
        self.selected = "default"
        self.principals: Dict[str, str] = {}
        self.canister_id: Optional[str] = None
        self.cap_id: Optional[str] = None
        self.deploys: List[Tuple[Optional[str], tuple]] = []
        self.failing_methods: Dict[str, str] = {}
        self.raw_responses: Dict[str, str] = {}
        self.reset_ledger()

    def reset_ledger(self):
        self.init: tuple = ()
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.history: List[str] = []

    def principal(self, key: str) -> str:
        if key not in self.principals:
            self.principals[key] = f"{len(self.principals):05d}-aaaaa-aaaaa-aaaaa-cai"
        return self.principals[key]

    def principal_of_identity(self, name: str) -> str:
        return self.principal(f"identity:{name}")

    def __call__(self, command, env_overrides=None, cwd=None, timeout=None, input=None):
        home = (env_overrides or {}).get("HOME")
        self.commands.append((list(command), home))
        args = list(command[1:])
        identity = None
        if args[:1] == ["--identity"]:
            identity, args = args[1], args[2:]
        if identity:
            key = f"identity:{identity}"
        elif home:
            key = f"home:{home}"
        else:
            key = f"identity:{self.selected}"

        if args == ["--version"]:
            return self._ok("dfx 0.9.3")
        if args[0] == "identity":
            return self._identity(args[1], key)
        if args[0] == "deploy":
            return self._deploy(args)
        if args[0] == "canister":
            args = [arg for arg in args if arg != "--no-wallet"]
            if args[3] == "id":
                return self._lookup(args[4])
            if args[3] == "call":
                return self._call(args[4:], self.principal(key))
        return self._fail(f"unsupported command {args}")

    @staticmethod
    def _ok(stdout: str):
        return subprocess.CompletedProcess([], 0, stdout=stdout + "\n", stderr="")

    @staticmethod
    def _fail(stderr: str, returncode: int = 255):
        return subprocess.CompletedProcess([], returncode, stdout="", stderr=stderr)

    def _identity(self, command, key):
        if command == "whoami":
            return self._ok(self.selected)
        if command == "get-principal":
            return self._ok(self.principal(key))
        if command == "list":
            return self._ok(
                "\n".join(
                    f"{name} *" if name == self.selected else name for name in self.identities
                )
            )
        return self._fail(f"unknown identity command {command}")

    def _deploy(self, args):
        canister = args[args.index("--network") + 2]
        mode = args[args.index("--mode") + 1] if "--mode" in args else None
        if canister == "ic-history-router":
            self.cap_id = CAP_ROUTER_ID
            return self._ok("Deployed ic-history-router")

        (argument,) = [arg for arg in args if arg.startswith("--argument=")]
        init = decode_args(argument[len("--argument=") :])
        self.deploys.append((mode, init))
        if self.canister_id is None or mode == "reinstall":
            self.reset_ledger()
            self.init = init
            owner, total_supply = init[5], init[4]
            self.balances[owner] = total_supply
            self.history.append("mint")
        self.canister_id = TOKEN_CANISTER_ID
        return self._ok(f"Deployed canisters. {canister}: {TOKEN_CANISTER_ID}")

    def _lookup(self, canister):
        if canister == "ic-history-router":
            if self.cap_id is None:
                return self._fail("Cannot find canister id. Please issue 'dfx canister create'.")
            return self._ok(self.cap_id)
        if self.canister_id is None:
            return self._fail("Cannot find canister id. Please issue 'dfx canister create'.")
        return self._ok(self.canister_id)

    def _call(self, args, caller):
        if args[0] == "--query":
            args = args[1:]
        canister, method, argument = args
        if canister not in ("token", self.canister_id) or self.canister_id is None:
            return self._fail(f"Canister {canister} not found")
        if method in self.failing_methods:
            return self._fail(self.failing_methods[method])
        if method in self.raw_responses:
            return self._ok(self.raw_responses[method])
        handler = getattr(self, f"_m_{method}", None)
        if handler is None:
            return self._fail(f"The Replica returned an error: method {method} not found")
        return self._ok(handler(caller, *decode_args(argument)))

    # Token methods
    def _receipt(self, kind: str, error: Optional[str] = None) -> str:
        if error:
            return f"(variant {{ Err = variant {{ {error} }} }})"
        self.history.append(kind)
        return f"(variant {{ Ok = {len(self.history) - 1} : nat }})"

    def _move(self, source, target, amount):
        self.balances[source] = self.balances.get(source, 0) - amount
        self.balances[target] = self.balances.get(target, 0) + amount

    def _m_name(self, caller):
        return f'("{self.init[1]}")'

    def _m_symbol(self, caller):
        return f'("{self.init[2]}")'

    def _m_decimals(self, caller):
        return f"({self.init[3]} : nat8)"

    def _m_totalSupply(self, caller):
        return f"({sum(self.balances.values()):_} : nat)"

    def _m_historySize(self, caller):
        return f"({len(self.history)} : nat)"

    def _m_getMetadata(self, caller):
        logo, name, symbol, decimals, _, owner, fee = self.init[:7]
        fields = [
            f"fee = {fee} : nat",
            f"decimals = {decimals} : nat8",
            f"owner = principal \"{owner}\"",
            f"logo = \"{logo[:20]}\"",
            f"name = \"{name}\"",
            f"totalSupply = {sum(self.balances.values())} : nat",
            f"symbol = \"{symbol}\"",
        ]
        return "(record { " + "; ".join(fields) + " })"

    def _m_getTokenInfo(self, caller):
        return (
            f"(record {{ holderNumber = {len(self.balances)} : nat64; "
            f'feeTo = principal "{self.init[7]}"; historySize = {len(self.history)} : nat }})'
        )

    def _m_getHolders(self, caller, start, limit):
        holders = sorted(self.balances.items())[start : start + limit]
        items = "; ".join(f'record {{ principal "{p}"; {b} : nat }}' for p, b in holders)
        return f"(vec {{ {items} }})"

    def _m_balanceOf(self, caller, who):
        return f"({self.balances.get(who, 0):_} : nat)"

    def _m_allowance(self, caller, owner, spender):
        return f"({self.allowances.get((owner, spender), 0)} : nat)"

    def _m_approve(self, caller, spender, amount):
        self.allowances[(caller, spender)] = amount
        return self._receipt("approve")

    def _m_transfer(self, caller, to, amount):
        if self.balances.get(caller, 0) < amount:
            return self._receipt("transfer", "InsufficientBalance")
        self._move(caller, to, amount)
        return self._receipt("transfer")

    def _m_transferFrom(self, caller, source, to, amount):
        if self.allowances.get((source, caller), 0) < amount:
            return self._receipt("transferFrom", "InsufficientAllowance")
        if self.balances.get(source, 0) < amount:
            return self._receipt("transferFrom", "InsufficientBalance")
        self.allowances[(source, caller)] -= amount
        self._move(source, to, amount)
        return self._receipt("transferFrom")

    def _m_mint(self, caller, to, amount):
        if caller != self.init[5]:
            return self._receipt("mint", "Unauthorized")
        self.balances[to] = self.balances.get(to, 0) + amount
        return self._receipt("mint")

    def _m_burn(self, caller, amount):
        if self.balances.get(caller, 0) < amount:
            return self._receipt("burn", "InsufficientBalance")
        self.balances[caller] -= amount
        return self._receipt("burn")

    def balance(self, principal) -> int:
        return self.balances.get(Principal(principal), 0)


@pytest.fixture(scope="session", autouse=True)
def stdlib_logging():
    configure_logging()


@pytest.fixture(scope="session", autouse=True)
def registered_tasks():
    collect_tasks(dip20_player.tasks)


@pytest.fixture
def fake_dfx():
    return FakeDfx()


@pytest.fixture
def dfx_available():
    with patch.object(Dfx, "available", new_callable=PropertyMock, return_value=True):
        yield


@pytest.fixture
def dfx(fake_dfx, dfx_available):
    return Dfx("local", runner=fake_dfx)


@pytest.fixture
def identities(dfx):
    with IdentityProvisioner(dfx, named={"charlie": "Charlie"}) as provisioner:
        yield provisioner


@pytest.fixture
def project_dir(tmp_path) -> Path:
    project = tmp_path.joinpath("project")
    project.mkdir()
    project.joinpath("DIP20-logo.png").write_bytes(b"\x89PNG\r\n\x1a\nlogo")
    return project


@pytest.fixture
def environment(project_dir):
    return EnvironmentConfig(
        network="local", genesis_amount=1_000_000, cap_id=CAP_ROUTER_ID, project_dir=project_dir
    )


@pytest.fixture
def minimal_definition_dict():
    """A dictionary with the minimum required keys for instantiating any ConfigMapping."""
    return {
        "version": 1,
        "scenario": {"serial": {"tasks": [{"wait": 0}]}},
        "settings": {},
        "token": {"logo": "data:image/png;base64,AA=="},
        "identities": {},
    }


@pytest.fixture
def write_scenario(project_dir):
    """Write a definition dict to a scenario file in the project and return its path."""

    def write(definition: dict, name: str = "scenario") -> Path:
        path = project_dir.joinpath(f"{name}.yaml")
        path.write_text(yaml.safe_dump(definition))
        return path

    return write


@pytest.fixture
def echo_lines():
    lines = []

    def echo(message="", **kwargs):  # pylint: disable=unused-argument
        lines.append(message)

    echo.lines = lines
    return echo
