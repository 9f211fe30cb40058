"""
Gateway Configuration
====================

Loads all environment variables for the claim gateway.

Environment variables should be set in .env file in project root.
Every value has a default so the gateway (and the test suite) can import
this module without a fully-populated environment.
"""

import os
from dataclasses import dataclass
from typing import Dict

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================
# Gateway Build Info (for reproducible builds)
# ============================================================
BUILD_ID = os.getenv("BUILD_ID", "dev-local")
GITHUB_COMMIT = os.getenv("GITHUB_SHA", "unknown")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ============================================================
# Supabase PostgreSQL (Ledger + Eligible Handles + Auth)
# ============================================================
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")  # Session checks (auth.get_user)
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")  # Ledger writes

CLAIMS_TABLE = os.getenv("CLAIMS_TABLE", "claim_records")
ELIGIBLE_HANDLES_TABLE = os.getenv("ELIGIBLE_HANDLES_TABLE", "eligible_handles")

# ============================================================
# Chain Network (testnet | arbitrum | mainnet)
# ============================================================
NETWORK = os.getenv("NETWORK", "testnet")

# Public fallbacks, used only when no RPC override is configured
DEFAULT_RPC_URLS = {
    "mainnet": "https://eth.llamarpc.com",
    "arbitrum": "https://arb1.arbitrum.io/rpc",
    "testnet": "https://sepolia-rollup.arbitrum.io/rpc",
}

NETWORK_RPC_ENV = {
    "mainnet": "MAINNET_RPC_URL",
    "arbitrum": "ARBITRUM_RPC_URL",
    "testnet": "TESTNET_RPC_URL",
}


def get_rpc_url(network: str = None) -> str:
    """
    Resolve the RPC endpoint for a network.

    Order: network-specific override, generic RPC_URL, public default.
    Unknown networks fall back to testnet.
    """
    network = network or NETWORK
    if network not in DEFAULT_RPC_URLS:
        network = "testnet"
    return (
        os.getenv(NETWORK_RPC_ENV[network])
        or os.getenv("RPC_URL")
        or DEFAULT_RPC_URLS[network]
    )


RPC_URL = get_rpc_url(NETWORK)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS", ZERO_ADDRESS)

# ============================================================
# Whitelisting Service (server-to-server, holds the owner key)
# ============================================================
WHITELIST_SERVER_URL = os.getenv("WHITELIST_SERVER_URL") or (
    None if IS_PRODUCTION else "http://localhost:3001"
)
WHITELIST_API_KEY = os.getenv("WHITELIST_API_KEY") or os.getenv("API_KEY")

# Admin key for eligible-handle ingestion (POST /handles)
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

# ============================================================
# Upstream Timeouts
# ============================================================
READ_TIMEOUT_SECONDS = float(os.getenv("READ_TIMEOUT_SECONDS", "10"))
WHITELIST_TIMEOUT_SECONDS = float(os.getenv("WHITELIST_TIMEOUT_SECONDS", "30"))

# ============================================================
# Signature Settings
# ============================================================
SIGNATURE_MAX_AGE_MS = int(os.getenv("SIGNATURE_MAX_AGE_MS", "300000"))  # 5 minutes
SIGNATURE_CLOCK_SKEW_MS = int(os.getenv("SIGNATURE_CLOCK_SKEW_MS", "60000"))  # 1 minute
CLAIM_CAMPAIGN_NAME = os.getenv("CLAIM_CAMPAIGN_NAME", "OG NFT")

# ============================================================
# Rate Limits (per route, per caller key)
# ============================================================


@dataclass(frozen=True)
class RateLimitRule:
    """Fixed window: at most `max_requests` per `window_ms` for one key."""

    window_ms: int
    max_requests: int


_DEFAULT_RATE_LIMITS = {
    "eligibility": (60_000, 20),  # cheap reads, high frequency
    "whitelist": (60_000, 5),  # scarce on-chain action
    "claim": (60_000, 3),  # terminal bookkeeping
    "status": (60_000, 30),
    "challenge": (60_000, 20),
    "token": (60_000, 30),
    "handles": (60_000, 5),
}


def _load_rate_limits() -> Dict[str, RateLimitRule]:
    rules = {}
    for route, (window_ms, max_requests) in _DEFAULT_RATE_LIMITS.items():
        prefix = f"RATE_LIMIT_{route.upper()}"
        rules[route] = RateLimitRule(
            window_ms=int(os.getenv(f"{prefix}_WINDOW_MS", str(window_ms))),
            max_requests=int(os.getenv(f"{prefix}_MAX", str(max_requests))),
        )
    return rules


RATE_LIMITS: Dict[str, RateLimitRule] = _load_rate_limits()
RATE_LIMIT_SWEEP_SECONDS = int(os.getenv("RATE_LIMIT_SWEEP_SECONDS", "300"))  # 5 minutes

# ============================================================
# CORS
# ============================================================
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# ============================================================
# Configuration Validation
# ============================================================

def validate_config():
    """
    Validates that all required configuration is present.
    Called on import and again on application startup.
    """
    errors = []

    # Check Supabase
    if not SUPABASE_URL:
        errors.append("SUPABASE_URL is not set")
    if not SUPABASE_SERVICE_ROLE_KEY:
        errors.append("SUPABASE_SERVICE_ROLE_KEY is not set")

    # Check whitelisting service
    if not WHITELIST_SERVER_URL:
        errors.append("WHITELIST_SERVER_URL is not set (required in production)")
    if IS_PRODUCTION and not WHITELIST_API_KEY:
        errors.append("WHITELIST_API_KEY is not set")

    # Check contract
    if CONTRACT_ADDRESS == ZERO_ADDRESS:
        errors.append("CONTRACT_ADDRESS is not set")

    if NETWORK not in DEFAULT_RPC_URLS:
        errors.append(f"NETWORK '{NETWORK}' is unknown (expected one of {sorted(DEFAULT_RPC_URLS)})")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return True


def print_config_summary():
    """
    Prints a summary of the configuration (for debugging).
    NEVER prints secrets!
    """
    print("=" * 60)
    print("Claim Gateway Configuration Summary")
    print("=" * 60)
    print(f"Build ID: {BUILD_ID}")
    print(f"GitHub Commit: {GITHUB_COMMIT}")
    print(f"Environment: {ENVIRONMENT}")
    print(f"Supabase URL: {SUPABASE_URL}")
    print(f"Tables: {CLAIMS_TABLE}, {ELIGIBLE_HANDLES_TABLE}")
    print(f"Network: {NETWORK}")
    print(f"Contract: {CONTRACT_ADDRESS}")
    print(f"Whitelist Server: {WHITELIST_SERVER_URL or 'NOT CONFIGURED'}")
    print(f"Whitelist API Key: {'Set' if WHITELIST_API_KEY else 'Not set'}")
    print(f"Timeouts: read={READ_TIMEOUT_SECONDS}s, whitelist={WHITELIST_TIMEOUT_SECONDS}s")
    print(f"Signature max age: {SIGNATURE_MAX_AGE_MS}ms")
    for route, rule in RATE_LIMITS.items():
        print(f"Rate limit [{route}]: {rule.max_requests}/{rule.window_ms // 1000}s")
    print("=" * 60)


# Validate configuration on import
try:
    validate_config()
except ValueError as e:
    print(f"⚠️  Configuration warning: {e}")
    print("⚠️  Some features may not work correctly.")
