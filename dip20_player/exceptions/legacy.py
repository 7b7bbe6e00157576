class ScenarioError(Exception):
    exit_code = 20


class ProvisioningError(ScenarioError):
    """Setting up an identity or the canister failed.

    Raised before any scenario step touches the ledger; never retried.
    """

    exit_code = 11


class IdentityProvisioningError(ProvisioningError):
    exit_code = 12


class CapResolutionError(ProvisioningError):
    """No Cap history router could be established for the target network."""

    exit_code = 13


class CallError(ScenarioError):
    """A query or update call failed (tool error, timeout or undecodable response)."""

    exit_code = 25

    def __init__(self, message, method=None, identity=None):
        super().__init__(message)
        self.method = method
        self.identity = identity


class TxRejected(CallError):
    """The canister answered with ``variant { Err = ... }``."""

    exit_code = 26

    def __init__(self, reason, method=None, identity=None):
        super().__init__(f"{method} rejected by canister: {reason}", method, identity)
        self.reason = reason


class UnknownTaskTypeError(ScenarioError):
    exit_code = 27


class ScenarioAssertionError(ScenarioError):
    exit_code = 30

    def __init__(self, message, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual
