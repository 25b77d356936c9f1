"""Chain identifiers and the QR artifact that carries them."""

from .codec import (
    CHAIN_ID_PATTERN,
    ChainIdentifier,
    IdentifierMinter,
    QRArtifact,
    StageMarker,
    decode,
    encode,
    parse_identifier,
)

__all__ = [
    "CHAIN_ID_PATTERN",
    "ChainIdentifier",
    "IdentifierMinter",
    "QRArtifact",
    "StageMarker",
    "decode",
    "encode",
    "parse_identifier",
]
