"""
Claim Gateway API Endpoints

FastAPI routers, one module per endpoint group:
- eligibility: GET /eligibility
- whitelist: POST /whitelist, GET /whitelist
- claim: POST /claim
- challenge: GET /challenge
- token: GET /token/latest
- handles: POST /handles (admin ingestion)
"""
