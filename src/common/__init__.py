"""
Common utilities for the gift-exchange orchestration core.

Modules:
- interfaces: collaborator protocols (ledger reader/writer, confidential capability, session source)
- ledger: async HTTP client for the contract-call gateway
- relayer: async HTTP client for the confidential-computation relayer
- errors: error taxonomy shared by every component
- coercion: numeric and address normalization
- config / logging_utils: settings and logging setup
- rate_limiter: async sliding-window limiter used by the HTTP clients
"""

__all__ = [
    "coercion",
    "config",
    "errors",
    "interfaces",
    "ledger",
    "logging_utils",
    "rate_limiter",
    "relayer",
]
