import os
from dotenv import load_dotenv
load_dotenv()
# ---- BlockCypher ----
BLOCKCYPHER_TOKEN = os.environ.get("BLOCKCYPHER_TOKEN")
BLOCKCYPHER_BASE_URL = os.environ.get("BLOCKCYPHER_BASE_URL", "https://api.blockcypher.com/v1/btc/main")

BLOCKCYPHER_REQUESTS_PER_SEC = float(os.environ.get("BLOCKCYPHER_REQUESTS_PER_SEC", "3.0"))
BLOCKCYPHER_TIMEOUT_SEC = 10
BLOCKCYPHER_MAX_RETRIES = 3

SATOSHI_PER_BTC = 100_000_000

# ---- Traversal defaults ----
LINEAGE_MAX_DEPTH = int(os.environ.get("LINEAGE_MAX_DEPTH", "3"))
LINEAGE_MAX_CHILDREN = int(os.environ.get("LINEAGE_MAX_CHILDREN", "3"))
LINEAGE_MAX_IN_FLIGHT = int(os.environ.get("LINEAGE_MAX_IN_FLIGHT", "8"))
LINEAGE_PROVIDER_TIMEOUT_SEC = float(os.environ.get("LINEAGE_PROVIDER_TIMEOUT_SEC", "10"))
LINEAGE_ADDRESS_HISTORY_LIMIT = int(os.environ.get("LINEAGE_ADDRESS_HISTORY_LIMIT", "10"))

# ---- Detectors ----
# Reported hour-of-day is computed in this zone so results never depend on the host
LINEAGE_TIMEZONE = os.environ.get("LINEAGE_TIMEZONE", "UTC")

# ----- Address labels -----
# JSON directory of known exchange / mixer / darknet / gambling addresses (optional)
ADDRESS_LABELS_PATH = os.environ.get("ADDRESS_LABELS_PATH", "data/address_labels.json")
