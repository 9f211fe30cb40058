"""
Claim Gateway Background Tasks

- limiter_sweep: evicts expired rate-limit windows every few minutes
"""
