"""Manifest text format and META-INF entry naming.

A manifest lists every payload file of a container at signing time::

    Datafile
    \turi=<relative path>
    \thash-algorithm=<algorithm name>
    \thash=<hex digest>
    ...
    signature-uri=META-INF/signature<N>.ksi

One ``Datafile`` block per record, in the order given (callers pass records
sorted by ``uri``). The trailing ``signature-uri`` line has no newline after it.
"""
from __future__ import annotations

import re
from typing import Iterable, Literal

from pydantic import BaseModel

from .errors import DecodeFailure

META_INF = "META-INF"
MANIFEST_EXT = "tlv"
SIGNATURE_EXT = "ksi"

_ENTRY_RE = re.compile(r"META-INF/(manifest|signature)(0|[1-9][0-9]*)\.(tlv|ksi)")
_EXT_FOR_KIND = {"manifest": MANIFEST_EXT, "signature": SIGNATURE_EXT}


class DataFileRecord(BaseModel):
    uri: str
    hash_algorithm: str
    hash: str


def manifest_path(sequence: int) -> str:
    return f"{META_INF}/manifest{sequence}.{MANIFEST_EXT}"


def signature_path(sequence: int) -> str:
    return f"{META_INF}/signature{sequence}.{SIGNATURE_EXT}"


def parse_entry_name(name: str) -> tuple[Literal["manifest", "signature"], int] | None:
    """Return (kind, sequence) for a manifest/signature entry name, else None.

    The extension must agree with the kind; ``manifest3.ksi`` is not a match.
    """
    m = _ENTRY_RE.fullmatch(name)
    if not m:
        return None
    kind, number, ext = m.groups()
    if _EXT_FOR_KIND[kind] != ext:
        return None
    return kind, int(number)  # type: ignore[return-value]


def build_manifest(records: Iterable[DataFileRecord], sequence: int) -> str:
    lines: list[str] = []
    for rec in records:
        lines.append("Datafile\n")
        lines.append(f"\turi={rec.uri}\n")
        lines.append(f"\thash-algorithm={rec.hash_algorithm}\n")
        lines.append(f"\thash={rec.hash}\n")
    lines.append(f"signature-uri={signature_path(sequence)}")
    return "".join(lines)


def parse_manifest(text: str) -> tuple[list[DataFileRecord], str]:
    """Parse manifest text back into (records, signature_uri)."""
    records: list[DataFileRecord] = []
    signature_uri: str | None = None
    current: dict[str, str] | None = None
    keys = {"uri": "uri", "hash-algorithm": "hash_algorithm", "hash": "hash"}

    def _close():
        if current is None:
            return
        if set(current) != set(keys.values()):
            raise DecodeFailure("Manifest has an incomplete Datafile block.")
        records.append(DataFileRecord(**current))

    for raw in text.split("\n"):
        if raw == "":
            continue
        if raw == "Datafile":
            _close()
            current = {}
        elif raw.startswith("\t") and "=" in raw and current is not None:
            key, value = raw[1:].split("=", 1)
            if key not in keys:
                raise DecodeFailure(f"Unknown manifest field: {key}")
            current[keys[key]] = value
        elif raw.startswith("signature-uri="):
            _close()
            current = None
            signature_uri = raw.split("=", 1)[1]
        else:
            raise DecodeFailure(f"Unexpected manifest line: {raw!r}")
    if signature_uri is None:
        raise DecodeFailure("Manifest has no signature-uri line.")
    return records, signature_uri


__all__ = [
    "META_INF",
    "DataFileRecord",
    "manifest_path",
    "signature_path",
    "parse_entry_name",
    "build_manifest",
    "parse_manifest",
]
