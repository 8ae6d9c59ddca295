"""
Signing keys for deploy approvals.
"""

from .signer import KeyPair, PrivateKey

__all__ = ["KeyPair", "PrivateKey"]
