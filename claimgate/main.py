"""
OG NFT Claim Gateway
====================

FastAPI service that reconciles a verified X identity, a wallet-ownership
signature and on-chain mint state into one claim decision.

Endpoints:
- GET  /eligibility?handle=   Is this handle eligible?
- POST /whitelist             Whitelist a signature-verified wallet
- GET  /whitelist?address=    Whitelist status (degrades to false)
- POST /claim                 Record a completed mint
- GET  /challenge?address=    Message to sign
- GET  /token/latest          Latest minted token id
- POST /handles               Eligible-handle ingestion (admin)
- GET  /, /health             Health checks
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from claimgate import __version__
from claimgate.config import (
    BUILD_ID,
    CONTRACT_ADDRESS,
    CORS_ORIGINS,
    GITHUB_COMMIT,
    IS_PRODUCTION,
    LOG_LEVEL,
    NETWORK,
    print_config_summary,
)
from claimgate.api import challenge, claim, eligibility, handles, token, whitelist
from claimgate.dependencies import ClaimServices, build_services
from claimgate.errors import ClaimGatewayError, RateLimitError
from claimgate.middleware.security import SecurityHeadersMiddleware
from claimgate.models.responses import HealthResponse
from claimgate.tasks.limiter_sweep import rate_limiter_sweep_task

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================
# Lifespan Context Manager (for background tasks)
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    print("\n" + "=" * 80)
    print("🔧 INITIALIZING CLAIM GATEWAY")
    print("=" * 80)
    print_config_summary()

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
        print("✅ Claim services built (Supabase ledger, contract reads, whitelisting service)")
    else:
        print("✅ Using injected claim services")

    print(f"   Network: {NETWORK}")
    print(f"   Contract: {CONTRACT_ADDRESS}")
    print("=" * 80 + "\n")

    print("=" * 80)
    print("🚀 STARTING BACKGROUND TASKS")
    print("=" * 80)
    sweep_task = asyncio.create_task(rate_limiter_sweep_task(app.state.services.limiter))
    print("✅ Rate limiter sweep task started")
    print("=" * 80 + "\n")

    yield

    # ════════════════════════════════════════════════════════════════
    # CLEANUP: Graceful shutdown
    # ════════════════════════════════════════════════════════════════
    print("\n" + "=" * 80)
    print("🛑 SHUTTING DOWN CLAIM GATEWAY")
    print("=" * 80)

    print("   🛑 Cancelling background tasks...")
    sweep_task.cancel()
    results = await asyncio.gather(sweep_task, return_exceptions=True)
    for result in results:
        if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
            print(f"   ⚠️  Task error during shutdown: {result}")

    print("   ✅ All background tasks stopped")
    print("=" * 80)
    print("✅ CLAIM GATEWAY SHUTDOWN COMPLETE")
    print("=" * 80 + "\n")


# ============================================================
# Exception Handlers
# ============================================================

async def claim_error_handler(request: Request, exc: ClaimGatewayError):
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {exc.status_code} {exc.reason}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "invalid_input",
            "message": "Invalid request body",
            "fields": [f for f in fields if f],
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "internal_error",
            "message": "An error occurred. Please try again later.",
        },
    )


# ============================================================
# Create FastAPI App
# ============================================================

def create_app(services: Optional[ClaimServices] = None) -> FastAPI:
    """
    Build the gateway app.

    Args:
        services: pre-built claim services (tests); built on startup otherwise
    """
    app = FastAPI(
        title="OG NFT Claim Gateway",
        description="Identity, wallet and mint-state reconciliation for the OG NFT claim",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(SecurityHeadersMiddleware, enforce_https=IS_PRODUCTION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ClaimGatewayError, claim_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(eligibility.router)
    app.include_router(whitelist.router)
    app.include_router(claim.router)
    app.include_router(challenge.router)
    app.include_router(token.router)
    app.include_router(handles.router)

    @app.get("/", response_model=HealthResponse)
    async def root():
        """Health check + build info."""
        return HealthResponse(
            service="og-claim-gateway",
            status="ok",
            build_id=BUILD_ID,
            github_commit=GITHUB_COMMIT,
            network=NETWORK,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/health")
    async def health():
        """Container orchestration health probe."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    print("=" * 60)
    print("🚀 Starting OG NFT Claim Gateway")
    print("=" * 60)
    print(f"Build ID: {BUILD_ID}")
    print(f"GitHub Commit: {GITHUB_COMMIT}")
    print("=" * 60)

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=LOG_LEVEL.lower(),
    )
