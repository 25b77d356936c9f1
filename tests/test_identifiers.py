"""Tests for identifier minting and QR encoding."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from herbtrace.exceptions import DuplicateError, ValidationError
from herbtrace.identifiers import (
    ChainIdentifier,
    IdentifierMinter,
    QRArtifact,
    StageMarker,
    decode,
    encode,
    parse_identifier,
)


def test_minted_identifier_format() -> None:
    minter = IdentifierMinter(clock=lambda: 1700000000.5)
    identifier = minter.mint()
    assert re.fullmatch(r"EVT_1700000000500_[0-9A-F]{8}", identifier.value)
    assert identifier.marker is StageMarker.COLLECTION
    assert minter.issued(identifier)


def test_minter_retries_then_gives_up() -> None:
    suffixes = iter(["AAAAAAAA", "AAAAAAAA", "BBBBBBBB"])
    minter = IdentifierMinter(clock=lambda: 1.0, entropy=lambda: next(suffixes))
    assert minter.mint().value == "EVT_1000_AAAAAAAA"
    assert minter.mint().value == "EVT_1000_BBBBBBBB"

    stuck = IdentifierMinter(clock=lambda: 1.0, entropy=lambda: "CCCCCCCC")
    stuck.mint()
    with pytest.raises(DuplicateError):
        stuck.mint()


def test_batch_marker_is_recognised() -> None:
    assert ChainIdentifier("BATCH_2025_01").marker is StageMarker.MANUFACTURING
    assert parse_identifier("TEST_42").marker is StageMarker.QUALITY


@pytest.mark.parametrize("text", ["", "EVT_", "XYZ_123", "EVT_12-3", "evt_123", "EVT_123\n"])
def test_parse_identifier_rejects_malformed(text: str) -> None:
    with pytest.raises(ValidationError) as exc:
        parse_identifier(text)
    assert exc.value.codes == ["E_ID_FORMAT"]


def test_chain_identifier_constructor_validates() -> None:
    with pytest.raises(ValueError):
        ChainIdentifier("nope")


def test_encode_carries_identifier_only() -> None:
    artifact = encode("EVT_1700000000000_3FA2C91B")
    assert artifact.payload == "EVT_1700000000000_3FA2C91B"
    assert decode(artifact).value == artifact.payload


def test_encode_rejects_malformed_identifier() -> None:
    with pytest.raises(ValidationError):
        encode("not-an-id")


def test_decode_accepts_scanner_output() -> None:
    assert decode("EVT_1_ABC\n").value == "EVT_1_ABC"
    assert decode("EVT_1_ABC\r\n").value == "EVT_1_ABC"
    assert decode(b"PROC_77").marker is StageMarker.PROCESSING
    with pytest.raises(ValidationError):
        decode("EVT_1_ABC\n\n")


def test_decode_does_not_require_a_known_chain() -> None:
    # a well-formed identifier decodes whether or not any ledger has it
    assert decode("EVT_999_FFFFFFFF").value == "EVT_999_FFFFFFFF"


def test_svg_rendering() -> None:
    svg = QRArtifact("EVT_1_ABC").to_svg()
    assert "<svg" in svg


def test_save_png_and_svg(tmp_path: Path) -> None:
    artifact = encode("EVT_1700000000000_3FA2C91B")
    png = artifact.save(tmp_path / "labels" / "chain.png")
    svg = artifact.save(tmp_path / "chain.svg")
    assert png.read_bytes().startswith(b"\x89PNG")
    assert "<svg" in svg.read_text(encoding="utf-8")
