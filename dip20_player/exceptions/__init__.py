from dip20_player.exceptions.legacy import (
    CallError,
    CapResolutionError,
    IdentityProvisioningError,
    ProvisioningError,
    ScenarioAssertionError,
    ScenarioError,
    TxRejected,
    UnknownTaskTypeError,
)

__all__ = [
    "CallError",
    "CapResolutionError",
    "IdentityProvisioningError",
    "ProvisioningError",
    "ScenarioAssertionError",
    "ScenarioError",
    "TxRejected",
    "UnknownTaskTypeError",
]
