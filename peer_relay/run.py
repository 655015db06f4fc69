#!/usr/bin/env python3
"""Console entry point: serve the relay with uvicorn"""
import uvicorn

from peer_relay.core.config import settings


def main() -> None:
    # Logging is configured by the application itself
    uvicorn.run(
        "peer_relay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
        ws="websockets",
    )


if __name__ == "__main__":
    main()
