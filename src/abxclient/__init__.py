"""ABX market-data feed client.

Streams every packet from an ABX server, finds sequence gaps, and recovers
each missing packet with a resend request before handing over a complete,
ordered packet list.
"""

from .client import FeedClient
from .packet import MalformedFrame, Packet, Side
from .net import OperationTimeout, TransportError
from .session import FeedSession

__all__ = [
    "FeedClient",
    "FeedSession",
    "MalformedFrame",
    "OperationTimeout",
    "Packet",
    "Side",
    "TransportError",
]
