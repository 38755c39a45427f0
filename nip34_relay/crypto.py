"""Hashing and signing helpers for Nostr events."""

from __future__ import annotations

import json
from typing import Sequence

from blake3 import blake3
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey


def generate_keypair() -> tuple[bytes, bytes]:
    """Return (private_key, public_key)."""

    signing_key = SigningKey.generate()
    return signing_key.encode(), signing_key.verify_key.encode()


def public_key(private_key: bytes) -> bytes:
    _validate_length(private_key, "private_key", 32)
    return SigningKey(private_key).verify_key.encode()


def serialize_event(
    *,
    pubkey: str,
    created_at: int,
    kind: int,
    tags: Sequence[Sequence[str]],
    content: str,
) -> bytes:
    """Return the NIP-01 canonical serialization used for the event id."""

    payload = [0, pubkey, created_at, kind, [list(tag) for tag in tags], content]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_event_id(
    *,
    pubkey: str,
    created_at: int,
    kind: int,
    tags: Sequence[Sequence[str]],
    content: str,
) -> str:
    """Compute the hex event id as the Blake3 digest of the canonical serialization."""

    if created_at <= 0:
        raise ValueError("created_at must be positive")
    if kind < 0 or kind > 0xFFFF:
        raise ValueError("kind must be uint16")
    payload = serialize_event(
        pubkey=pubkey,
        created_at=created_at,
        kind=kind,
        tags=tags,
        content=content,
    )
    return blake3(payload).hexdigest()


def sign(event_id: bytes, private_key: bytes) -> bytes:
    """Sign an event_id with an Ed25519 private key."""

    _validate_length(event_id, "event_id", 32)
    signing_key = SigningKey(private_key)
    return signing_key.sign(event_id).signature


def verify(event_id: bytes, sig: bytes, pubkey: bytes) -> bool:
    """Verify an Ed25519 signature for an event_id."""

    _validate_length(event_id, "event_id", 32)
    _validate_length(sig, "sig", 64)
    _validate_length(pubkey, "pubkey", 32)

    try:
        VerifyKey(pubkey).verify(event_id, sig)
    except BadSignatureError:
        return False
    return True


def simulated_signature(event_id: bytes, pubkey: bytes) -> bytes:
    """Deterministic 64-byte stand-in signature for authors without a known key."""

    return blake3(pubkey + event_id).digest(length=64)


def derive_hex(seed: str, *, length: int = 32) -> str:
    """Deterministic hex string derived from ``seed`` (commit hashes, identifiers)."""

    return blake3(seed.encode("utf-8")).hexdigest(length=length)


def _validate_length(value: bytes, field: str, size: int) -> None:
    if len(value) != size:
        raise ValueError(f"{field} must be {size} bytes")
