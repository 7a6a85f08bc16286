"""Unit tests for IntegrityVerifier and DocumentRecord serialization"""

import io
from datetime import datetime, timezone

from thesisrepo.domain.documents import DocumentRecord, IntegrityVerifier, LocationKind


CONTENT = b"%PDF-1.4\nthesis body\n"
CONTENT_SHA256 = IntegrityVerifier.checksum(CONTENT)


class TestIntegrityVerifier:

    def test_known_digest(self):
        assert IntegrityVerifier.checksum(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_stream_matches_bytes(self):
        data = CONTENT * 5000
        assert IntegrityVerifier.checksum_stream(io.BytesIO(data)) == IntegrityVerifier.checksum(data)

    def test_verify_file(self, tmp_path):
        path = tmp_path / "thesis.pdf"
        path.write_bytes(CONTENT)

        assert IntegrityVerifier().verify(path, CONTENT_SHA256) is True
        assert IntegrityVerifier().verify(path, CONTENT_SHA256.upper()) is True

    def test_single_flipped_byte_fails(self, tmp_path):
        path = tmp_path / "thesis.pdf"
        corrupted = bytearray(CONTENT)
        corrupted[3] ^= 0x01
        path.write_bytes(bytes(corrupted))

        assert IntegrityVerifier().verify(path, CONTENT_SHA256) is False

    def test_missing_file_fails(self, tmp_path):
        assert IntegrityVerifier().verify(tmp_path / "gone.pdf", CONTENT_SHA256) is False

    def test_no_recorded_checksum_fails(self):
        assert IntegrityVerifier().verify_bytes(CONTENT, None) is False

    def test_verify_bytes(self):
        assert IntegrityVerifier().verify_bytes(CONTENT, CONTENT_SHA256) is True
        assert IntegrityVerifier().verify_bytes(CONTENT + b"x", CONTENT_SHA256) is False


class TestDocumentRecord:

    def test_dict_round_trip(self):
        record = DocumentRecord(
            storage_key="thesis/documents/a-1-ff.pdf",
            original_name="a.pdf",
            mime_type="application/pdf",
            size_bytes=len(CONTENT),
            location_kind=LocationKind.LOCAL,
            backend="local",
            url="http://localhost:5000/uploads/thesis/documents/a-1-ff.pdf",
            checksum=CONTENT_SHA256,
            uploaded_at=datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc),
        )

        assert DocumentRecord.from_dict(record.to_dict()) == record

    def test_legacy_dict_defaults(self):
        record = DocumentRecord.from_dict(
            {
                "storage_key": "/var/uploads/a.pdf",
                "original_name": "a.pdf",
                "mime_type": "application/pdf",
                "size_bytes": "12",
                "location_kind": "LOCAL",
            }
        )

        assert record.backend == "local"
        assert record.size_bytes == 12
        assert record.is_local
        assert record.checksum is None
