"""
Billing & Usage Governor

Shared by every integration that calls a billed third-party API.

Architecture:
    - billing.models: Usage ledger, period counters, quota limits, subscriptions
    - billing.cost: Per-service cost estimates in cents
    - billing.tiers: Tenant -> tier resolution
    - billing.quota: Read-only quota evaluation
    - billing.recorder: Append-only usage recording
    - billing.service: Usage summaries and history
    - billing.api: REST endpoints for quota checks and reporting
"""
