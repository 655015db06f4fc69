from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column  # type: ignore[attr-defined]

from peer_relay.db.base import Base


class Peer(Base):
    """A relay-issued identity that connections authenticate as"""

    # Base provides: created_at
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    def __repr__(self) -> str:
        return f"<Peer(id='{self.id}')>"
