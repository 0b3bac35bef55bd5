from decimal import Decimal
import os
from dotenv import load_dotenv
load_dotenv()
# ---- Helius ----
HELIUS_API_KEY = os.environ.get("HELIUS_API_KEY")
HELIUS_BASE_URL = os.environ.get("HELIUS_BASE_URL", "https://api.helius.xyz/v0")

HELIUS_REQUESTS_PER_SEC = 5.0     # 200ms courtesy delay between calls
HELIUS_TIMEOUT_SEC = 30
HELIUS_MAX_RETRIES = 3

# transactions fetched per address
ROOT_TX_LIMIT = 100
HOP_TX_LIMIT = 50

# ---- Solana ----
LAMPORTS_PER_SOL = Decimal("1000000000")
NATIVE_SYMBOL = "SOL"
EXPLORER_TX_URL = "https://solscan.io/tx/{signature}"

# ---- Taint propagation ----
CONTINUATION_THRESHOLD_PCT = Decimal("10")
NOISE_THRESHOLD_PCT = Decimal("1")
MAX_FLOW_ROWS = int(os.environ.get("TAINTRACE_MAX_FLOW_ROWS", "200"))

# token volume must exceed native volume by this factor to auto-detect a token theft
TOKEN_DOMINANCE_MULTIPLIER = Decimal("1000")

MIN_HOPS = 1
MAX_HOPS = 10
DEFAULT_HOPS = 3

TRACE_TIMEOUT_SEC = float(os.environ.get("TAINTRACE_TIMEOUT_SEC", "300"))
