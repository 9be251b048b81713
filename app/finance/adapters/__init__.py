"""
Adapters for finance collaborators.

Usage:
    from finance.adapters import get_fiscal_issuer

    issuer = get_fiscal_issuer()
    receipt = issuer.issue(payment)
"""

from finance.adapters.fiscal import LoggingFiscalIssuer, get_fiscal_issuer, set_fiscal_issuer

__all__ = [
    "LoggingFiscalIssuer",
    "get_fiscal_issuer",
    "set_fiscal_issuer",
]
