from typing import TYPE_CHECKING, Any, Optional, Tuple

import structlog

from dip20_player.candid import (
    CandidArg,
    NatArg,
    PrincipalArg,
    Variant,
    parse_typed_arg,
    unwrap_receipt,
)
from dip20_player.constants import DEFAULT_IDENTITY
from dip20_player.exceptions import ScenarioAssertionError, ScenarioError, TxRejected
from dip20_player.identity import Identity
from dip20_player.tasks.base import Task
from dip20_player.tasks.execution import SerialTask

if TYPE_CHECKING:
    from dip20_player.runner import ScenarioRunner

log = structlog.get_logger(__name__)


class CanisterCallTask(Task):
    """Base class for tasks issuing a single call against the token canister.

    Common config options:

      - ``as``: name of the identity to call as. Defaults to ``default``.
      - ``expected``: value the (processed) result must equal. Either a literal,
        or ``{from_storage: <key>, delta: <int>}`` to compare against a value
        an earlier task stored.
      - ``store_as``: keep the result in the runner's task storage under this key.
      - ``label``: text printed in front of the result.
    """

    _method: str = ""
    _query: bool = True
    _label: str = ""
    _caller_key = "as"

    def __init__(self, runner: "ScenarioRunner", config: Any, parent: Task = None) -> None:
        super().__init__(runner, config, parent)
        if not isinstance(self._config, dict):
            raise ScenarioError(f"{self.__class__.__name__} expects a mapping, got {config!r}")
        self._check_required()

    _required: Tuple[str, ...] = ()

    def _check_required(self):
        missing = [key for key in self._required if key not in self._config]
        if missing:
            raise ScenarioError(
                f"Task '{self._name}' is missing required options: {', '.join(missing)}"
            )

    @property
    def method(self) -> str:
        return self._config.get("method", self._method)

    @property
    def caller_name(self) -> str:
        return str(self._config.get(self._caller_key, DEFAULT_IDENTITY))

    @property
    def caller(self) -> Identity:
        return self._runner.identities.get_or_create(self.caller_name)

    @property
    def label(self) -> str:
        return self._config.get("label") or self._label or self.method

    def principal(self, name: str) -> PrincipalArg:
        return PrincipalArg(str(self._runner.identities.principal_of(name)))

    def amount(self, key: str = "amount") -> NatArg:
        return NatArg(int(self._config[key]))

    def _call_args(self) -> Tuple[CandidArg, ...]:
        return ()

    def _process_result(self, payload: Any) -> Any:
        return payload

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        client = self._runner.client
        caller = self.caller
        call = client.query if self._query else client.update
        result = call(caller, self.method, self._call_args())
        value = self._process_result(result.unwrap(self.method, caller))

        if "store_as" in self._config:
            self._runner.task_storage[self._config["store_as"]] = value
        self._runner.report(self, caller, value)

        if "expected" in self._config:
            expected = self._runner.resolve_expected(self._config["expected"])
            if not values_match(expected, value):
                raise ScenarioAssertionError(
                    f"{self.label}: expected {expected!r}, got {value!r}",
                    expected=expected,
                    actual=value,
                )
        return value


def values_match(expected: Any, actual: Any) -> bool:
    if isinstance(actual, int) and not isinstance(actual, bool) and isinstance(expected, str):
        try:
            expected = int(expected.replace("_", ""))
        except ValueError:
            return False
    return expected == actual


class QueryTask(CanisterCallTask):
    """Issue an arbitrary query call.

    Arguments are given as ``TYPE:VALUE`` strings; principals may name an identity.

    Example::

        - query: {method: balanceOf, args: ["principal:alice"], expected: 500}
    """

    _name = "query"
    _required = ("method",)

    def _call_args(self):
        return tuple(
            parse_typed_arg(str(arg), resolve_principal=self._resolve_principal)
            for arg in self._config.get("args", [])
        )

    def _resolve_principal(self, value: str) -> str:
        if value.lower() in self._runner.identity_names:
            return str(self._runner.identities.principal_of(value))
        return value


class UpdateTask(QueryTask):
    """Issue an arbitrary update call.

    With ``receipt: true`` the response is treated as a ``TxReceipt``, see
    :class:`TxReceiptTask`.
    """

    _name = "update"
    _query = False

    def _process_result(self, payload):
        if self._config.get("receipt"):
            return check_receipt(self, payload)
        return payload


class NameTask(CanisterCallTask):
    _name = "name"
    _method = "name"
    _label = "Name"


class SymbolTask(CanisterCallTask):
    _name = "symbol"
    _method = "symbol"
    _label = "Symbol"


class DecimalsTask(CanisterCallTask):
    _name = "decimals"
    _method = "decimals"
    _label = "Decimals"


class HistorySizeTask(CanisterCallTask):
    _name = "history_size"
    _method = "historySize"
    _label = "History Size"


class TotalSupplyTask(CanisterCallTask):
    """Query the total supply, e.g. to assert it did not change::

        - total_supply: {expected: {from_storage: genesis}}
    """

    _name = "total_supply"
    _method = "totalSupply"
    _label = "Total Supply"


class MetadataTask(CanisterCallTask):
    _name = "metadata"
    _method = "getMetadata"
    _label = "Metadata"


class TokenInfoTask(CanisterCallTask):
    _name = "token_info"
    _method = "getTokenInfo"
    _label = "Token Info"


class HoldersTask(CanisterCallTask):
    """List ``limit`` balance holders starting at index ``start``."""

    _name = "holders"
    _method = "getHolders"
    _label = "Holders"

    def _call_args(self):
        start = int(self._config.get("start", 0))
        limit = int(self._config.get("limit", 100))
        return (NatArg(start), NatArg(limit))


class InfoTask(SerialTask):
    """Print the canister's name, symbol, total supply, decimals and history size."""

    _name = "info"

    def __init__(self, runner: "ScenarioRunner", config: Any, parent: Task = None) -> None:
        config = dict(config or {})
        config.setdefault("name", "Canister Info")
        caller = config.pop("as", DEFAULT_IDENTITY)
        config["tasks"] = [
            {task: {"as": caller}}
            for task in ("name", "symbol", "total_supply", "decimals", "history_size")
        ]
        super().__init__(runner, config, parent)


class BalanceTask(CanisterCallTask):
    """Query the balance of the identity ``of``.

    Example::

        - balance: {of: bob, expected: 500}
    """

    _name = "balance"
    _method = "balanceOf"
    _required = ("of",)

    @property
    def label(self):
        return self._config.get("label") or f"{str(self._config['of']).capitalize()} Balance"

    def _call_args(self):
        return (self.principal(self._config["of"]),)


class AllowanceTask(CanisterCallTask):
    """Query how much ``spender`` may still move on behalf of ``owner``."""

    _name = "allowance"
    _method = "allowance"
    _required = ("owner", "spender")

    @property
    def label(self):
        return self._config.get("label") or (
            f"Allowance {self._config['owner']} -> {self._config['spender']}"
        )

    def _call_args(self):
        return (self.principal(self._config["owner"]), self.principal(self._config["spender"]))


def check_receipt(task: CanisterCallTask, payload: Any) -> Any:
    """Validate a ``TxReceipt`` against the task's ``expect_error`` option.

    Returns the transaction index of a successful receipt, or the error reason
    of an expected rejection.

    :raises TxRejected: if the canister rejected the call unexpectedly.
    :raises ScenarioAssertionError: if a rejection was expected, but the call succeeded
        or failed for another reason.
    """
    expect_error = task._config.get("expect_error")
    if isinstance(payload, Variant):
        ok, value = unwrap_receipt(payload)
    else:
        # Plain ``nat`` responses from older token builds
        ok, value = True, payload

    if ok:
        if expect_error:
            raise ScenarioAssertionError(
                f"{task.label}: expected rejection {expect_error}, but the call succeeded",
                expected=expect_error,
                actual=value,
            )
        return value

    if not expect_error:
        raise TxRejected(value, method=task.method, identity=task.caller)
    if str(value).split(":")[0] != expect_error:
        raise ScenarioAssertionError(
            f"{task.label}: expected rejection {expect_error}, got {value}",
            expected=expect_error,
            actual=value,
        )
    log.info("Call rejected as expected", method=task.method, reason=value)
    return value


class TxReceiptTask(CanisterCallTask):
    """Update calls answering with a ``TxReceipt``.

    Set ``expect_error`` to the ``TxError`` tag (e.g. ``InsufficientAllowance``)
    to assert the canister rejects the call.
    """

    _query = False

    def _process_result(self, payload):
        return check_receipt(self, payload)


class ApproveTask(TxReceiptTask):
    """Allow ``spender`` to move up to ``amount`` tokens of the caller.

    Example::

        - approve: {as: default, spender: alice, amount: 10000}
    """

    _name = "approve"
    _method = "approve"
    _required = ("spender", "amount")

    @property
    def label(self):
        return self._config.get("label") or (
            f"Approve {self._config['spender']} for {self._config['amount']}"
        )

    def _call_args(self):
        return (self.principal(self._config["spender"]), self.amount())


class TransferTask(TxReceiptTask):
    """Transfer ``amount`` tokens from the caller to ``to``.

    Example::

        - transfer: {as: bob, to: alice, amount: 500}
    """

    _name = "transfer"
    _method = "transfer"
    _required = ("to", "amount")

    @property
    def label(self):
        return self._config.get("label") or (
            f"Transfer {self._config['amount']} {self.caller_name} -> {self._config['to']}"
        )

    def _call_args(self):
        return (self.principal(self._config["to"]), self.amount())


class TransferFromTask(TxReceiptTask):
    """Move ``amount`` tokens from ``from`` to ``to`` using the caller's allowance.

    The caller defaults to ``from`` itself.

    Example::

        - transfer_from: {as: alice, from: default, to: bob, amount: 1000}
    """

    _name = "transfer_from"
    _method = "transferFrom"
    _required = ("from", "to", "amount")

    @property
    def caller_name(self) -> str:
        return str(self._config.get("as", self._config["from"]))

    @property
    def label(self):
        return self._config.get("label") or (
            f"TransferFrom {self._config['amount']} {self._config['from']} -> "
            f"{self._config['to']} as {self.caller_name}"
        )

    def _call_args(self):
        return (
            self.principal(self._config["from"]),
            self.principal(self._config["to"]),
            self.amount(),
        )


class MintTask(TxReceiptTask):
    """Mint ``amount`` new tokens to ``to``. Only the canister owner may mint."""

    _name = "mint"
    _method = "mint"
    _required = ("to", "amount")

    def _call_args(self):
        return (self.principal(self._config["to"]), self.amount())


class BurnTask(TxReceiptTask):
    """Burn ``amount`` tokens of the caller."""

    _name = "burn"
    _method = "burn"
    _required = ("amount",)

    def _call_args(self):
        return (self.amount(),)


def describe(value: Any) -> Optional[str]:
    """Render a decoded value for the progress output."""
    if isinstance(value, Variant):
        return value.tag if value.value is None else f"{value.tag}({describe(value.value)})"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{key}: {describe(item)}" for key, item in value.items()) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(describe(item) for item in value) + "]"
    if isinstance(value, str):
        return value if len(value) <= 80 else value[:77] + "..."
    return str(value)
