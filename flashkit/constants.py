"""Flashkit constants and defaults."""

# Seeded account layout used by the flashloan template program.
DEFAULT_ACCOUNT_SIZE = 100
DEFAULT_ACCOUNTS = (
    ("initializer", "hello1", DEFAULT_ACCOUNT_SIZE),
    ("flashloan_token_account", "hello2", DEFAULT_ACCOUNT_SIZE),
    ("flashloan_program_account", "hello3", DEFAULT_ACCOUNT_SIZE),
    ("token_program", "hello4", DEFAULT_ACCOUNT_SIZE),
)
REPORT_ACCOUNT_NAME = "flashloan_program_account"

# create-with-seed limit from the system program.
MAX_SEED_LEN = 32
MAX_ACCOUNT_SIZE = 10 * 1024 * 1024

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_LAMPORTS_PER_SIGNATURE = 5_000
# Signature budget reserved when topping up the payer.
FEE_SIGNATURE_ALLOWANCE = 100

DEFAULT_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_TIMEOUT = 30.0

CONFIG_FILENAME = "flashkit.toml"
PROGRAM_DIR = "dist/program"
PROGRAM_SO_NAME = "solana_flashloan_template.so"
PROGRAM_KEYPAIR_NAME = "solana_flashloan_template-keypair.json"

ENV_RPC_URL = "FLASHKIT_RPC_URL"
ENV_PAYER_KEYPAIR = "FLASHKIT_PAYER_KEYPAIR"
ENV_PROGRAM_ID = "FLASHKIT_PROGRAM_ID"
