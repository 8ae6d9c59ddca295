"""
Version information for the contract clients package.

We keep a static __version__ (PEP 440); the user agent sent to nodes is
derived from it.
"""

from __future__ import annotations

# Bump this when publishing
__version__ = "0.3.0"


def user_agent() -> str:
    """Default User-Agent header value, e.g. 'casper-clients-py/0.3.0'."""
    return f"casper-clients-py/{__version__}"


__all__ = ["__version__", "user_agent"]
