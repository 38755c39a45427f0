"""Deterministic test keys, signer key ring and bech32 (NIP-19) encoding."""

from __future__ import annotations

from typing import Mapping

from bech32 import bech32_encode, convertbits

from .crypto import public_key
from .kinds import REPO_ANNOUNCEMENT

BECH32_PRIV_PREFIX = "nsec"
BECH32_PUB_PREFIX = "npub"
BECH32_ADDR_PREFIX = "naddr"

# Public test keys. Never use them outside of tests.
TEST_PRIVATE_KEYS: dict[str, str] = {
    "alice": "01" * 32,
    "bob": "02" * 32,
    "charlie": "03" * 32,
    "maintainer": "04" * 32,
    "dev_user": "0123456789abcdef" * 4,
}

TEST_PUBKEYS: dict[str, str] = {
    name: public_key(bytes.fromhex(private_hex)).hex()
    for name, private_hex in TEST_PRIVATE_KEYS.items()
}

TEST_COMMITS: dict[str, str] = {
    "initial": "0" * 40,
    "second": "1" * 40,
    "third": "2" * 40,
    "feature": "3" * 40,
    "merge": "4" * 40,
}


class Signer:
    """Key ring used to sign fixture events.

    Events authored by a pubkey the ring knows get a real Ed25519 signature.
    ``default`` names the key used for events that carry no pubkey.
    """

    def __init__(
        self,
        keys: Mapping[str, str] | None = None,
        *,
        default: str = "alice",
    ) -> None:
        self._private_by_name: dict[str, bytes] = {}
        self._private_by_pubkey: dict[str, bytes] = {}
        self._pubkey_by_name: dict[str, str] = {}
        for name, private_hex in (keys if keys is not None else TEST_PRIVATE_KEYS).items():
            self.add_key(name, private_hex)
        if default not in self._private_by_name:
            raise ValueError(f"unknown default key: {default}")
        self._default = default

    def add_key(self, name: str, private_key: str | bytes) -> str:
        private = bytes.fromhex(private_key) if isinstance(private_key, str) else private_key
        pubkey = public_key(private).hex()
        self._private_by_name[name] = private
        self._private_by_pubkey[pubkey] = private
        self._pubkey_by_name[name] = pubkey
        return pubkey

    @property
    def default_pubkey(self) -> str:
        return self._pubkey_by_name[self._default]

    def pubkey(self, name: str) -> str:
        try:
            return self._pubkey_by_name[name]
        except KeyError as exc:
            raise KeyError(f"unknown key: {name}") from exc

    def private_key_for(self, pubkey: str) -> bytes | None:
        return self._private_by_pubkey.get(pubkey)

    def names(self) -> list[str]:
        return list(self._pubkey_by_name)


def encode_bech32(data: bytes, *, prefix: str) -> str:
    five_bits = convertbits(data, 8, 5, True)
    if five_bits is None:
        raise ValueError("failed to convert to bech32")
    return bech32_encode(prefix, five_bits)


def encode_npub(pubkey: str) -> str:
    return encode_bech32(bytes.fromhex(pubkey), prefix=BECH32_PUB_PREFIX)


def encode_nsec(private_key: str) -> str:
    return encode_bech32(bytes.fromhex(private_key), prefix=BECH32_PRIV_PREFIX)


def encode_naddr(
    *,
    identifier: str,
    pubkey: str,
    kind: int = REPO_ANNOUNCEMENT,
    relays: list[str] | None = None,
) -> str:
    """Encode an addressable event pointer as a NIP-19 ``naddr`` string.

    TLV layout: 0 identifier, 1 relay (repeatable), 2 author, 3 kind as
    a 4-byte big-endian integer.
    """

    payload = bytearray()
    payload += _tlv(0, identifier.encode("utf-8"))
    for relay in relays or []:
        payload += _tlv(1, relay.encode("utf-8"))
    payload += _tlv(2, bytes.fromhex(pubkey))
    payload += _tlv(3, kind.to_bytes(4, "big"))
    return encode_bech32(bytes(payload), prefix=BECH32_ADDR_PREFIX)


def address_to_naddr(address: str, *, relays: list[str] | None = None) -> str:
    parts = address.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"invalid address: {address}")
    kind, pubkey, identifier = parts
    return encode_naddr(identifier=identifier, pubkey=pubkey, kind=int(kind), relays=relays)


def _tlv(tag: int, value: bytes) -> bytes:
    if len(value) > 0xFF:
        raise ValueError("tlv value exceeds uint8 length")
    return bytes([tag, len(value)]) + value
