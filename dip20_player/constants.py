DEFAULT_GENESIS_AMOUNT = 1_000_000_000
DEFAULT_CANISTER_NAME = "token"
DEFAULT_DFX_BINARY = "dfx"
DEFAULT_CALL_TIMEOUT = 120  # seconds
DEPLOY_TIMEOUT = 15 * 60  # seconds

#: The identity the canister is deployed with; it owns the genesis supply.
DEFAULT_IDENTITY = "default"
DEFAULT_IDENTITY_ALIASES = frozenset({"default", "owner"})

#: Cap history router deployed on the IC mainnet.
MAINNET_NETWORK = "ic"
MAINNET_CAP_ID = "lj532-6iaaa-aaaah-qcc7a-cai"

CAP_CANISTER_NAME = "ic-history-router"
CAP_PROJECT_DIR = "cap"

#: Location of a dfx identity's key material, relative to its HOME.
DFX_IDENTITY_DIR = (".config", "dfx", "identity")
DFX_IDENTITY_PEM = "identity.pem"

BUILTIN_SCENARIO = "healthcheck"
