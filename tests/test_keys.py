from __future__ import annotations

from bech32 import CHARSET, convertbits
import pytest

from nip34_relay.crypto import public_key
from nip34_relay.events import repo_address
from nip34_relay.keys import (
    TEST_PRIVATE_KEYS,
    TEST_PUBKEYS,
    Signer,
    address_to_naddr,
    encode_naddr,
    encode_npub,
    encode_nsec,
)


def _decode(value: str) -> tuple[str, bytes]:
    # naddr strings exceed the 90 char limit of bech32_decode, so strip the checksum by hand
    prefix, _, payload = value.rpartition("1")
    data = [CHARSET.find(char) for char in payload[:-6]]
    decoded = convertbits(data, 5, 8, False)
    assert decoded is not None
    return prefix, bytes(decoded)


def test_test_pubkeys_match_private_keys() -> None:
    for name, private_hex in TEST_PRIVATE_KEYS.items():
        assert TEST_PUBKEYS[name] == public_key(bytes.fromhex(private_hex)).hex()
    assert len(set(TEST_PUBKEYS.values())) == len(TEST_PUBKEYS)


def test_npub_and_nsec_round_trip() -> None:
    prefix, data = _decode(encode_npub(TEST_PUBKEYS["alice"]))
    assert prefix == "npub"
    assert data.hex() == TEST_PUBKEYS["alice"]

    prefix, data = _decode(encode_nsec(TEST_PRIVATE_KEYS["bob"]))
    assert prefix == "nsec"
    assert data.hex() == TEST_PRIVATE_KEYS["bob"]


def test_naddr_tlv_layout() -> None:
    pubkey = TEST_PUBKEYS["alice"]
    naddr = encode_naddr(identifier="demo", pubkey=pubkey, relays=["wss://relay.test"])
    prefix, data = _decode(naddr)
    assert prefix == "naddr"
    assert data[:6] == bytes([0, 4]) + b"demo"
    relay = b"wss://relay.test"
    assert data[6 : 8 + len(relay)] == bytes([1, len(relay)]) + relay
    rest = data[8 + len(relay) :]
    assert rest[:2] == bytes([2, 32])
    assert rest[2:34].hex() == pubkey
    assert rest[34:] == bytes([3, 4]) + (30617).to_bytes(4, "big")


def test_address_to_naddr_matches_encode_naddr() -> None:
    pubkey = TEST_PUBKEYS["bob"]
    assert address_to_naddr(repo_address(pubkey, "demo")) == encode_naddr(identifier="demo", pubkey=pubkey)
    with pytest.raises(ValueError, match="invalid address"):
        address_to_naddr("30617-demo")


def test_signer_defaults_and_lookup() -> None:
    signer = Signer()
    assert signer.default_pubkey == TEST_PUBKEYS["alice"]
    assert signer.pubkey("charlie") == TEST_PUBKEYS["charlie"]
    assert signer.private_key_for(TEST_PUBKEYS["bob"]) == bytes.fromhex(TEST_PRIVATE_KEYS["bob"])
    assert signer.private_key_for("ee" * 32) is None
    assert "dev_user" in signer.names()
    with pytest.raises(KeyError, match="unknown key"):
        signer.pubkey("mallory")


def test_signer_custom_keys() -> None:
    signer = Signer({"ci": "0a" * 32}, default="ci")
    pubkey = signer.add_key("extra", "0b" * 32)
    assert signer.default_pubkey == public_key(b"\x0a" * 32).hex()
    assert signer.private_key_for(pubkey) == b"\x0b" * 32
    with pytest.raises(ValueError, match="unknown default key"):
        Signer({"ci": "0a" * 32})
