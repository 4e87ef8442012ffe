import pytest

from sealbox.containers.errors import DecodeFailure
from sealbox.containers.manifest import (
    DataFileRecord,
    build_manifest,
    manifest_path,
    parse_entry_name,
    parse_manifest,
    signature_path,
)


def test_single_file_manifest_exact_text():
    rec = DataFileRecord(uri="a.txt", hash_algorithm="SHA2_256", hash="d")
    text = build_manifest([rec], 1)
    assert text == (
        "Datafile\n\turi=a.txt\n\thash-algorithm=SHA2_256\n\thash=d\n"
        "signature-uri=META-INF/signature1.ksi"
    )


def test_manifest_keeps_record_order_and_sequence():
    recs = [
        DataFileRecord(uri="a.txt", hash_algorithm="SHA2_256", hash="11"),
        DataFileRecord(uri="dir/b.bin", hash_algorithm="SHA2_256", hash="22"),
    ]
    text = build_manifest(recs, 7)
    assert text.index("uri=a.txt") < text.index("uri=dir/b.bin")
    assert text.count("Datafile\n") == 2
    assert text.endswith("signature-uri=META-INF/signature7.ksi")
    assert build_manifest(recs, 7) == text


def test_empty_manifest_is_only_signature_line():
    assert build_manifest([], 3) == "signature-uri=META-INF/signature3.ksi"


def test_entry_paths_and_parsing():
    assert manifest_path(4) == "META-INF/manifest4.tlv"
    assert signature_path(4) == "META-INF/signature4.ksi"
    assert parse_entry_name("META-INF/manifest12.tlv") == ("manifest", 12)
    assert parse_entry_name("META-INF/signature3.ksi") == ("signature", 3)


@pytest.mark.parametrize(
    "name",
    [
        "META-INF/manifest3.ksi",
        "META-INF/signature.ksi",
        "META-INF/signature3.ksi.bak",
        "docs/META-INF/signature3.ksi",
        "signature-manifest1.tlv",
        "META-INF/",
        "META-INF/signature07.ksi",
        "META-INF/manifest00.tlv",
    ],
)
def test_parse_entry_name_rejects_lookalikes(name):
    assert parse_entry_name(name) is None


def test_parse_manifest_reads_back_records():
    recs = [
        DataFileRecord(uri="a.txt", hash_algorithm="SHA2_256", hash="ab"),
        DataFileRecord(uri="b=c.txt", hash_algorithm="SHA2_256", hash="cd"),
    ]
    parsed, sig_uri = parse_manifest(build_manifest(recs, 2))
    assert parsed == recs
    assert sig_uri == "META-INF/signature2.ksi"


def test_parse_manifest_rejects_garbage():
    with pytest.raises(DecodeFailure):
        parse_manifest("Datafile\n\turi=a.txt\n")
    with pytest.raises(DecodeFailure):
        parse_manifest("not a manifest")
    with pytest.raises(DecodeFailure):
        parse_manifest("Datafile\n\turi=a\n\thash=1\nsignature-uri=META-INF/signature1.ksi")


def test_parse_entry_name_accepts_zero():
    assert parse_entry_name("META-INF/signature0.ksi") == ("signature", 0)
