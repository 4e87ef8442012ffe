from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from ..settings import Settings
from ..trust.client import HttpTrustService, LocalTrustService, TrustServiceClient
from .errors import DecodeFailure, IOFailure, NameConflict, ValidationError
from .gateway import SigningGateway
from .hashing import hash_stream
from .locator import find_by_identity, list_signatures, next_sequence
from .manifest import DataFileRecord, build_manifest, manifest_path, parse_manifest, signature_path
from .store import READ_ERRORS, ArchiveStore, ContainerArchive


class ContainerListing(BaseModel):
    numberOfContainers: int
    containers: list[str] = Field(default_factory=list)


class SignatureReport(BaseModel):
    sequence: int
    signer: str | None = None
    manifest_present: bool
    signature_uri_ok: bool = False
    files_ok: bool = False
    mismatched_files: list[str] = Field(default_factory=list)
    token_ok: bool = False

    @property
    def ok(self) -> bool:
        return self.manifest_present and self.signature_uri_ok and self.files_ok and self.token_ok


class VerificationReport(BaseModel):
    name: str
    signatures: list[SignatureReport] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.signatures)


def _require(value: str | None, message: str) -> str:
    if value is None or len(value) < 1:
        raise ValidationError(message)
    return value


class ContainerService:
    """Create, list, sign and unsign containers.

    Every method is a self-contained transaction against one container and
    raises a ``ContainerError`` subclass on failure.
    """

    def __init__(self, store: ArchiveStore, gateway: SigningGateway):
        self.store = store
        self.gateway = gateway

    def create(self, name: str | None) -> None:
        name = _require(name, "Provide a name for the container.")
        if self.store.exists(name):
            raise NameConflict("Container with that name already exists!")
        self.store.create(name)

    def list(self) -> ContainerListing:
        names = self.store.list()
        return ContainerListing(numberOfContainers=len(names), containers=names)

    def _records(self, archive: ContainerArchive) -> list[DataFileRecord]:
        records = []
        for uri in archive.payload_names():
            try:
                with archive.open(uri) as fp:
                    alg, digest = hash_stream(fp)
            except READ_ERRORS as e:
                raise IOFailure(f"Failed to read '{uri}' from container '{archive.name}'.") from e
            records.append(DataFileRecord(uri=uri, hash_algorithm=alg, hash=digest))
        return records

    def sign(self, name: str | None, user_id: str | None) -> int:
        """Add a manifest+signature pair for ``user_id``; return its sequence number."""
        name = _require(name, "Provide the name of a container you wish to sign.")
        user_id = _require(user_id, "Provide your name to sign the content.")
        with self.store.open_for_mutation(name) as archive:
            records = self._records(archive)
            seq = next_sequence(archive)
            manifest = build_manifest(records, seq).encode("utf-8")
            # Nothing is staged until the token is in hand
            token = self.gateway.sign(manifest, user_id)
            archive.write(signature_path(seq), token)
            archive.write(manifest_path(seq), manifest)
        logging.info("Signed container %s as %s (sequence %d, %d file(s))", name, user_id, seq, len(records))
        return seq

    def delete(self, name: str | None, user_id: str | None) -> list[int]:
        """Remove every pair signed by ``user_id``; return the removed sequence numbers."""
        name = _require(name, "Provide the name of a container you wish to delete the signature from.")
        user_id = _require(user_id, "Provide your name to delete the signature from the container.")
        with self.store.open_for_mutation(name) as archive:
            matches = find_by_identity(archive, user_id, self.gateway)
            for pair in matches:
                if not archive.exists(pair.manifest_path):
                    raise IOFailure(
                        f"Container '{name}' is inconsistent: {pair.signature_path} has no "
                        f"{pair.manifest_path}."
                    )
                archive.delete(pair.manifest_path)
                archive.delete(pair.signature_path)
        removed = [p.sequence for p in matches]
        if removed:
            logging.info("Deleted signature(s) %s of %s from container %s", removed, user_id, name)
        else:
            logging.info("No signature of %s in container %s; nothing deleted", user_id, name)
        return removed

    def verify(self, name: str | None) -> VerificationReport:
        name = _require(name, "Provide the name of a container you wish to verify.")
        report = VerificationReport(name=name)
        with self.store.open_for_mutation(name) as archive:
            current = {r.uri: r for r in self._records(archive)}
            for pair in list_signatures(archive):
                report.signatures.append(self._verify_pair(archive, pair.sequence, current))
        return report

    def _verify_pair(self, archive: ContainerArchive, seq: int, current: dict[str, DataFileRecord]) -> SignatureReport:
        token = archive.read(signature_path(seq))
        try:
            signer = self.gateway.extract_identity(token)[-1]
        except DecodeFailure:
            signer = None
        if not archive.exists(manifest_path(seq)):
            return SignatureReport(sequence=seq, signer=signer, manifest_present=False)
        manifest = archive.read(manifest_path(seq))
        try:
            records, signature_uri = parse_manifest(manifest.decode("utf-8"))
        except (DecodeFailure, UnicodeDecodeError):
            return SignatureReport(sequence=seq, signer=signer, manifest_present=True)
        mismatched = [r.uri for r in records if current.get(r.uri) != r]
        return SignatureReport(
            sequence=seq,
            signer=signer,
            manifest_present=True,
            signature_uri_ok=signature_uri == signature_path(seq),
            files_ok=not mismatched,
            mismatched_files=mismatched,
            token_ok=self.gateway.verify(token, manifest),
        )


def build_trust_client(cfg: Settings) -> TrustServiceClient:
    if cfg.trust_backend == "http":
        return HttpTrustService(
            cfg.trust_url,
            cfg.trust_login_id,
            cfg.trust_login_key,
            timeout=cfg.trust_timeout_seconds,
        )
    return LocalTrustService(cfg.keys_path(), cfg.identity_prefix())


def build_service(cfg: Settings) -> ContainerService:
    store = ArchiveStore(cfg.containers_path(), cfg.source_path())
    return ContainerService(store, SigningGateway(build_trust_client(cfg)))


__all__ = ["ContainerService", "ContainerListing", "VerificationReport", "SignatureReport", "build_service"]
