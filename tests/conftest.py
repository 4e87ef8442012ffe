"""Shared test fixtures for sealbox."""

from __future__ import annotations

import os
import struct
import tempfile
import zipfile
from pathlib import Path

# Keep the module-level app (built from settings on import) out of the working tree.
os.environ.setdefault("SEALBOX_DATA_DIR", tempfile.mkdtemp(prefix="sealbox_test_"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from sealbox.api.main import create_app  # noqa: E402
from sealbox.containers.gateway import SigningGateway  # noqa: E402
from sealbox.containers.service import ContainerService  # noqa: E402
from sealbox.containers.store import ArchiveStore  # noqa: E402
from sealbox.trust.client import LocalTrustService  # noqa: E402

FIXED_NOW = 1_700_000_000.0


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Source tree holding a single ``a.txt``."""
    src = tmp_path / "files"
    src.mkdir()
    (src / "a.txt").write_bytes(b"hello container\n")
    return src


@pytest.fixture
def store(tmp_path: Path, source_dir: Path) -> ArchiveStore:
    return ArchiveStore(tmp_path / "containers", source_dir)


@pytest.fixture
def trust(tmp_path: Path) -> LocalTrustService:
    return LocalTrustService(tmp_path / "keys", ["GT", "GT", "sealbox"], clock=lambda: FIXED_NOW)


@pytest.fixture
def gateway(trust: LocalTrustService) -> SigningGateway:
    return SigningGateway(trust)


@pytest.fixture
def service(store: ArchiveStore, gateway: SigningGateway) -> ContainerService:
    return ContainerService(store, gateway)


@pytest.fixture
def client(service: ContainerService) -> TestClient:
    return TestClient(create_app(service))


@pytest.fixture
def corrupt_entry():
    """Flip the first byte of one entry's compressed data inside a zip on disk."""

    def _corrupt(path: Path, entry: str) -> None:
        with zipfile.ZipFile(path) as z:
            info = z.getinfo(entry)
        raw = bytearray(path.read_bytes())
        name_len, extra_len = struct.unpack("<HH", raw[info.header_offset + 26 : info.header_offset + 30])
        raw[info.header_offset + 30 + name_len + extra_len] ^= 0xFF
        path.write_bytes(bytes(raw))

    return _corrupt
