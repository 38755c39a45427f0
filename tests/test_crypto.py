from __future__ import annotations

import pytest

from nip34_relay.crypto import (
    compute_event_id,
    derive_hex,
    generate_keypair,
    serialize_event,
    sign,
    simulated_signature,
    verify,
)


def _event_id(**overrides: object) -> str:
    fields: dict[str, object] = {
        "pubkey": "ab" * 32,
        "created_at": 1_705_320_000,
        "kind": 1621,
        "tags": [["a", "30617:" + "ab" * 32 + ":demo"]],
        "content": "hello",
    }
    fields.update(overrides)
    return compute_event_id(**fields)  # type: ignore[arg-type]


def test_serialization_is_canonical_json() -> None:
    payload = serialize_event(pubkey="ab", created_at=1, kind=1, tags=[("t", "x")], content="é")
    assert payload == '[0,"ab",1,1,[["t","x"]],"é"]'.encode("utf-8")


def test_event_id_is_deterministic() -> None:
    assert _event_id() == _event_id()
    assert len(_event_id()) == 64


def test_event_id_covers_every_field() -> None:
    base = _event_id()
    assert _event_id(content="other") != base
    assert _event_id(kind=1617) != base
    assert _event_id(created_at=1_705_320_001) != base
    assert _event_id(tags=[]) != base


@pytest.mark.parametrize("field, value", [("created_at", 0), ("kind", -1), ("kind", 70_000)])
def test_event_id_rejects_out_of_range_fields(field: str, value: int) -> None:
    with pytest.raises(ValueError):
        _event_id(**{field: value})


def test_sign_and_verify() -> None:
    private_key, pubkey = generate_keypair()
    event_id = bytes.fromhex(_event_id(pubkey=pubkey.hex()))
    sig = sign(event_id, private_key)
    assert len(sig) == 64
    assert verify(event_id, sig, pubkey)
    assert not verify(event_id, b"\x00" * 64, pubkey)


def test_verify_rejects_wrong_lengths() -> None:
    with pytest.raises(ValueError, match="sig must be 64 bytes"):
        verify(b"\x00" * 32, b"\x00", b"\x00" * 32)


def test_simulated_signature_is_deterministic() -> None:
    event_id = bytes.fromhex(_event_id())
    first = simulated_signature(event_id, b"\x01" * 32)
    assert first == simulated_signature(event_id, b"\x01" * 32)
    assert first != simulated_signature(event_id, b"\x02" * 32)
    assert len(first) == 64


def test_derive_hex_lengths() -> None:
    assert len(derive_hex("commit:1", length=20)) == 40
    assert derive_hex("commit:1", length=20) != derive_hex("commit:2", length=20)
