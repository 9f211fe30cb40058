"""
Claim Engine

- eligibility: EligibilityOracle (eligible list + already-minted check)
- orchestrator: WhitelistOrchestrator (POST /whitelist decision + reconciliation)
- recorder: ClaimRecorder (terminal claim write, recoverable failures)
"""
