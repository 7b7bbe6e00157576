from dataclasses import dataclass
from typing import Any, Iterable, Optional

import structlog

from dip20_player.candid import CandidArg, CandidDecodeError, as_args, decode_response, encode_args
from dip20_player.dfx import Dfx
from dip20_player.exceptions import CallError
from dip20_player.exceptions.dfx import DfxError
from dip20_player.identity import Identity

log = structlog.get_logger(__name__)


@dataclass
class CallResult:
    success: bool
    payload: Any = None
    error: Optional[str] = None
    raw: str = ""

    def unwrap(self, method: str = None, identity: Identity = None) -> Any:
        """Return the payload, or raise :exc:`CallError` if the call failed."""
        if not self.success:
            raise CallError(self.error, method=method, identity=identity)
        return self.payload


class ServiceClient:
    """Issue query and update calls against one canister.

    Calls are made as the given :class:`Identity`, with dfx running inside that
    identity's credential context. Each call is bounded by `call_timeout`.

    Update calls are never retried: resubmitting a transfer whose outcome is
    unknown could apply it twice. A failed call is reported through
    :attr:`CallResult.success` and left to the caller.
    """

    def __init__(self, dfx: Dfx, canister: str, call_timeout: Optional[float] = None) -> None:
        self.dfx = dfx
        self.canister = canister
        self.call_timeout = call_timeout

    def __repr__(self):
        return f"<{self.__class__.__name__} canister={self.canister} network={self.dfx.network}>"

    def query(self, identity: Identity, method: str, args: Iterable[CandidArg] = ()) -> CallResult:
        return self._call(identity, method, args, query=True)

    def update(
        self, identity: Identity, method: str, args: Iterable[CandidArg] = ()
    ) -> CallResult:
        return self._call(identity, method, args, query=False)

    def _call(self, identity: Identity, method: str, args, query: bool) -> CallResult:
        kind = "query" if query else "update"
        argument = encode_args(as_args(list(args)))
        log.debug(
            "Calling canister", kind=kind, method=method, args=argument, identity=identity.name
        )

        try:
            raw = self.dfx.call(
                self.canister,
                method,
                argument,
                query=query,
                home=identity.home,
                identity=identity.dfx_identity,
                timeout=self.call_timeout,
            )
        except DfxError as ex:
            log.warning(
                "Call failed", kind=kind, method=method, identity=identity.name, error=str(ex)
            )
            return CallResult(success=False, error=str(ex))

        try:
            payload = decode_response(raw)
        except CandidDecodeError as ex:
            log.warning("Undecodable response", method=method, raw=raw, error=str(ex))
            error = f"Cannot decode response of {method}: {ex}"
            return CallResult(success=False, error=error, raw=raw)

        log.info("Call finished", kind=kind, method=method, identity=identity.name, result=payload)
        return CallResult(success=True, payload=payload, raw=raw)
