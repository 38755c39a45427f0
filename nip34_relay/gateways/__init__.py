"""Gateway adapters exposing the relay over a network."""

from .nostr_ws import WebSocketTransport, serve_nostr

__all__ = ["WebSocketTransport", "serve_nostr"]
