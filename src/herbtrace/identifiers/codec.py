"""Minting, encoding and decoding of chain identifiers.

A QR artifact carries the identifier string and nothing else, so its size stays
constant however long the chain behind it grows.
"""

from __future__ import annotations

import io
import re
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Set, Union

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_M

from ..exceptions import DuplicateError, ValidationError
from ..validators.issues import ValidationIssue


class StageMarker(Enum):
    COLLECTION = "EVT_"
    QUALITY = "TEST_"
    PROCESSING = "PROC_"
    MANUFACTURING = "BATCH_"


CHAIN_ID_PATTERN = re.compile(
    r"^(" + "|".join(marker.value for marker in StageMarker) + r")[A-Za-z0-9_]+$"
)


@dataclass(frozen=True)
class ChainIdentifier:
    value: str

    def __post_init__(self) -> None:
        if not CHAIN_ID_PATTERN.fullmatch(self.value):
            raise ValueError(f"malformed chain identifier {self.value!r}")

    @property
    def marker(self) -> StageMarker:
        for marker in StageMarker:
            if self.value.startswith(marker.value):
                return marker
        raise AssertionError("pattern guarantees a marker")  # pragma: no cover

    def __str__(self) -> str:
        return self.value


def parse_identifier(text: str) -> ChainIdentifier:
    """Validate *text* as a chain identifier or raise ``ValidationError``."""

    if not isinstance(text, str) or not CHAIN_ID_PATTERN.fullmatch(text):
        raise ValidationError(
            [
                ValidationIssue(
                    code="E_ID_FORMAT",
                    message=f"malformed chain identifier {text!r}",
                    location="chainId",
                )
            ]
        )
    return ChainIdentifier(text)


class IdentifierMinter:
    """Produce identifiers unique within this process.

    Identifiers look like ``EVT_1700000000000_3FA2C91B``: a stage marker, the
    epoch milliseconds and 8 random hex digits.
    """

    max_attempts = 5

    def __init__(
        self,
        marker: StageMarker = StageMarker.COLLECTION,
        *,
        clock: Callable[[], float] = time.time,
        entropy: Callable[[], str] = lambda: secrets.token_hex(4).upper(),
    ):
        self.marker = marker
        self._clock = clock
        self._entropy = entropy
        self._issued: Set[str] = set()

    def mint(self) -> ChainIdentifier:
        for _ in range(self.max_attempts):
            candidate = f"{self.marker.value}{int(self._clock() * 1000)}_{self._entropy()}"
            if candidate not in self._issued:
                self._issued.add(candidate)
                return ChainIdentifier(candidate)
        raise DuplicateError(
            f"could not mint a unique identifier after {self.max_attempts} attempts"
        )

    def issued(self, identifier: Union[ChainIdentifier, str]) -> bool:
        return str(identifier) in self._issued


@dataclass(frozen=True)
class QRArtifact:
    """Physical QR payload: a single line equal to the chain identifier."""

    payload: str

    def _build(self) -> qrcode.QRCode:
        code = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=1)
        code.add_data(self.payload)
        code.make(fit=True)
        return code

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.suffix.lower() == ".svg":
            path.write_text(self.to_svg(), encoding="utf-8")
        else:
            self._build().make_image().save(str(path))
        return path

    def to_svg(self) -> str:
        image = self._build().make_image(image_factory=qrcode.image.svg.SvgPathImage)
        buffer = io.BytesIO()
        image.save(buffer)
        return buffer.getvalue().decode("utf-8")


def encode(identifier: Union[ChainIdentifier, str]) -> QRArtifact:
    if isinstance(identifier, str):
        identifier = parse_identifier(identifier)
    return QRArtifact(payload=identifier.value)


def decode(artifact: Union[QRArtifact, str, bytes]) -> ChainIdentifier:
    """Extract the identifier from a scanned payload.

    A well-formed identifier decodes even if no ledger knows it.
    """

    if isinstance(artifact, QRArtifact):
        text = artifact.payload
    elif isinstance(artifact, bytes):
        text = artifact.decode("utf-8", errors="replace")
    else:
        text = artifact
    if text.endswith("\n"):
        text = text[:-1].rstrip("\r")
    return parse_identifier(text)
