"""
Node transports: JSON-RPC over HTTP and the server-sent event stream.
"""

from .http import NodeClient, NodeRpcClient
from .sse import EventHandler, EventKind, EventStreamClient

__all__ = [
    "NodeClient",
    "NodeRpcClient",
    "EventHandler",
    "EventKind",
    "EventStreamClient",
]
