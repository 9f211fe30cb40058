"""
OG NFT Claim Gateway
====================

FastAPI gateway that reconciles a verified social identity, a wallet-ownership
signature and on-chain contract state into a single whitelist/claim decision.

Features:
- Social-identity eligibility checks against an append-only handle list
- Wallet ownership via EIP-191 signed challenges (time-bounded)
- Idempotent whitelisting through the operator's whitelisting service
- Idempotent claim recording after an on-chain mint
- Per-route fixed-window rate limiting
"""

__version__ = "1.0.0"
__author__ = "OG Claim Team"
