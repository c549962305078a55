"""
Shared constants used across all client modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "speedtest-tui/1.3.0 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",  # compressed bodies would skew byte counts
    "Cache-Control": "no-store",
}

# ---------------------------------------------------------------------------
# Endpoints (relative to the server base URL)
# ---------------------------------------------------------------------------

DEFAULT_SERVER_URL = "http://127.0.0.1:8080"

DOWNLOAD_PATH = "/download"
UPLOAD_PATH = "/upload"
PING_PATH = "/ping"

# ---------------------------------------------------------------------------
# Trial configuration
# ---------------------------------------------------------------------------

FILE_SIZES_MB = (2.0, 5.0)
MEASUREMENTS_PER_SIZE = 2
COLD_START_SKIP = 1

PING_ATTEMPTS = 8
PING_PRECISION = 1

# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

SAMPLE_COUNT = 10               # cycles per measurement session
ZERO_RESULT_BACKOFF = 1.0       # seconds to wait after an all-zero cycle

# ---------------------------------------------------------------------------
# Limits (CLI / config validation)
# ---------------------------------------------------------------------------

MIN_CYCLES = 1
MAX_CYCLES = 100
MIN_TRIALS = 1
MAX_TRIALS = 20
MIN_PING_ATTEMPTS = 1
MAX_PING_ATTEMPTS = 100
MIN_SIZE_MB = 0.5
MAX_SIZE_MB = 10.0
MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 300.0

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

TRIAL_TIMEOUT = 30.0            # seconds before a trial is abandoned
CONNECT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

BYTES_PER_MB = 1024 * 1024
CHUNK_SIZE = 64 * 1024           # read / write granularity for timed transfers
MAX_CONNECTIONS = 16             # connector limit shared by all metrics
