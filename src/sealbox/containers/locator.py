from __future__ import annotations

import logging

from pydantic import BaseModel

from .errors import DecodeFailure, NotFound
from .gateway import SigningGateway
from .manifest import manifest_path, parse_entry_name
from .store import ContainerArchive


class SignaturePair(BaseModel):
    sequence: int
    manifest_path: str
    signature_path: str


def list_signatures(archive: ContainerArchive) -> list[SignaturePair]:
    """Every signature entry in META-INF with the manifest path sharing its number."""
    pairs = []
    for name in archive.names():
        parsed = parse_entry_name(name)
        if parsed is None or parsed[0] != "signature":
            continue
        seq = parsed[1]
        pairs.append(SignaturePair(sequence=seq, manifest_path=manifest_path(seq), signature_path=name))
    return sorted(pairs, key=lambda p: p.sequence)


def next_sequence(archive: ContainerArchive) -> int:
    numbers = [parsed[1] for parsed in map(parse_entry_name, archive.names()) if parsed is not None]
    return max(numbers, default=0) + 1


def find_by_identity(archive: ContainerArchive, user_id: str, gateway: SigningGateway) -> list[SignaturePair]:
    """Pairs whose signer identity chain ends with exactly ``user_id``.

    Entries that cannot be read or decoded are logged and skipped. If every
    candidate fails that way the whole lookup fails with ``DecodeFailure``.
    """
    candidates = list_signatures(archive)
    matches: list[SignaturePair] = []
    failures = 0
    for pair in candidates:
        try:
            chain = gateway.extract_identity(archive.read(pair.signature_path))
        except (DecodeFailure, NotFound) as e:
            failures += 1
            logging.warning("Skipping %s in container %s: %s", pair.signature_path, archive.name, e)
            continue
        if chain and chain[-1] == user_id:
            matches.append(pair)
    if candidates and failures == len(candidates):
        raise DecodeFailure(f"No signature in container '{archive.name}' could be decoded.")
    return matches


__all__ = ["SignaturePair", "list_signatures", "next_sequence", "find_by_identity"]
