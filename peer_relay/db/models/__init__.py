"""Database models"""

from peer_relay.db.models.message import Message
from peer_relay.db.models.peer import Peer

__all__ = [
    "Message",
    "Peer",
]
