"""Signaling wire schema definitions."""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"

# Upper bound on a handshake payload, in characters
MAX_CONTENT_LENGTH = 32767


class Method(str, Enum):
    """Methods a signaling connection may invoke"""

    OPEN = "open"
    RECONNECT = "reconnect"
    DESTROY = "destroy"
    SEND = "send"
    POLL = "poll"


class MessageType(str, Enum):
    """Handshake message kinds relayed between peers"""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


class RpcRequest(BaseModel):
    """Inbound request envelope"""

    method: str = Field(..., description="Name of the method to invoke")
    params: Optional[Dict[str, Any]] = Field(None, description="Method parameters")
    id: Optional[str] = Field(
        None, description="Correlation id echoed on the response; omitted for fire-and-forget"
    )

    model_config = ConfigDict(extra="ignore")


class OpenResult(BaseModel):
    """Identity assigned by a successful open"""

    id: str
    token: str


class MailboxMessage(BaseModel):
    """A handshake message delivered by poll"""

    type: str
    source: str
    content: str


def success_frame(request_id: str, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_frame(error: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "error": error}
    if request_id is not None:
        frame["id"] = request_id
    return frame
