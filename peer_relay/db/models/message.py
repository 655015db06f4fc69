from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column  # type: ignore[attr-defined]

from peer_relay.db.base import Base


class Message(Base):
    """A queued handshake payload waiting in its destination's mailbox"""

    # Base provides: created_at
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    destination: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)  # offer, answer, ice-candidate
    content: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id}, source='{self.source}', "
            f"destination='{self.destination}', type='{self.type}')>"
        )
