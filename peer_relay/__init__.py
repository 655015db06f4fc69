"""Store-and-forward signaling relay for peer-to-peer handshakes."""

__version__ = "1.0.0"
