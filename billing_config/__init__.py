"""
billing_config -- billing defaults.

Responsibility:
    ``BillingConfig`` (frozen, validated) and the YAML loader.  Services
    receive a ``BillingConfig`` instance; they never read files themselves.
"""

from billing_config.loader import load_billing_config, parse_billing_config
from billing_config.schema import BillingConfig, MissingChargeTypePolicy

__all__ = [
    "BillingConfig",
    "MissingChargeTypePolicy",
    "load_billing_config",
    "parse_billing_config",
]
