"""Unit tests for LocalStorageAdapter

Covers writes from bytes, streams and staged files, checksum recording,
idempotent deletes and containment of storage keys in the uploads root.
"""

import asyncio
import errno
import io
import os
from pathlib import Path

import pytest

from thesisrepo.domain.documents import DocumentValidationError, IntegrityVerifier, LocationKind
from thesisrepo.domain.documents.ports import UploadPayload
from thesisrepo.infrastructure.storage.local_storage_adapter import LocalStorageAdapter


PDF_CONTENT = b"%PDF-1.4\n%\xE2\xE3\xCF\xD3\nthesis body\n"


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorageAdapter:
    return LocalStorageAdapter(root=tmp_path / "uploads")


class TestLocalUpload:
    """Writing documents under the uploads root"""

    @pytest.mark.asyncio
    async def test_upload_bytes_records_checksum(self, storage: LocalStorageAdapter):
        """Bytes are written under the folder with their SHA256"""
        payload = UploadPayload.from_bytes(PDF_CONTENT, "My Thesis.pdf", "application/pdf")

        record = await storage.upload(payload, folder="thesis/documents")

        assert record.location_kind == LocationKind.LOCAL
        assert record.backend == "local"
        assert record.storage_key.startswith("thesis/documents/My_Thesis-")
        assert record.storage_key.endswith(".pdf")
        assert record.size_bytes == len(PDF_CONTENT)
        assert record.checksum == IntegrityVerifier.checksum(PDF_CONTENT)
        assert record.original_name == "My Thesis.pdf"
        assert storage.path_for(record.storage_key).read_bytes() == PDF_CONTENT

    @pytest.mark.asyncio
    async def test_upload_stream(self, storage: LocalStorageAdapter):
        """Readable streams are copied in chunks"""
        payload = UploadPayload(
            original_name="thesis.pdf", mime_type="application/pdf", stream=io.BytesIO(PDF_CONTENT)
        )

        record = await storage.upload(payload, folder="thesis/documents")

        assert storage.path_for(record.storage_key).read_bytes() == PDF_CONTENT

    @pytest.mark.asyncio
    async def test_upload_staged_file_is_moved(self, storage: LocalStorageAdapter, tmp_path: Path):
        """A staged file is moved into place, not copied"""
        staged = tmp_path / "abc.upload"
        staged.write_bytes(PDF_CONTENT)
        payload = UploadPayload.from_staged_file(staged, "thesis.pdf", "application/pdf")

        record = await storage.upload(payload, folder="thesis/documents")

        assert not staged.exists()
        assert storage.exists(record.storage_key)
        assert record.checksum == IntegrityVerifier.checksum(PDF_CONTENT)

    @pytest.mark.asyncio
    async def test_staged_file_on_another_filesystem(
        self, storage: LocalStorageAdapter, tmp_path: Path, monkeypatch
    ):
        """A rename that fails with EXDEV falls back to copying"""
        staged = tmp_path / "abc.upload"
        staged.write_bytes(PDF_CONTENT)

        def cross_device_rename(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link", src)

        monkeypatch.setattr(os, "rename", cross_device_rename)
        payload = UploadPayload.from_staged_file(staged, "thesis.pdf", "application/pdf")

        record = await storage.upload(payload, folder="thesis/documents")

        assert not staged.exists()
        assert storage.path_for(record.storage_key).read_bytes() == PDF_CONTENT
        assert record.checksum == IntegrityVerifier.checksum(PDF_CONTENT)

    @pytest.mark.asyncio
    async def test_local_records_have_no_public_url(self, storage: LocalStorageAdapter):
        """Local files are only reachable through the download endpoints"""
        record = await storage.upload(
            UploadPayload.from_bytes(PDF_CONTENT, "thesis.pdf", "application/pdf"), folder="thesis/documents"
        )

        assert record.url is None
        assert storage.resolve_url(record.storage_key) is None

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, storage: LocalStorageAdapter):
        """Empty payloads raise and leave nothing behind"""
        payload = UploadPayload.from_bytes(b"", "empty.pdf", "application/pdf")

        with pytest.raises(DocumentValidationError):
            await storage.upload(payload, folder="thesis/documents")

        folder = storage.root / "thesis" / "documents"
        assert not any(folder.iterdir())

    @pytest.mark.asyncio
    async def test_concurrent_uploads_get_distinct_keys(self, storage: LocalStorageAdapter):
        """Same filename, same folder, same moment: every upload keeps its bytes"""
        contents = [PDF_CONTENT + str(i).encode() for i in range(10)]
        payloads = [UploadPayload.from_bytes(c, "thesis.pdf", "application/pdf") for c in contents]

        records = await asyncio.gather(*(storage.upload(p, "thesis/documents") for p in payloads))

        assert len({r.storage_key for r in records}) == len(records)
        for record, content in zip(records, contents):
            assert storage.path_for(record.storage_key).read_bytes() == content


class TestLocalDelete:
    """Idempotent deletes"""

    @pytest.mark.asyncio
    async def test_delete_twice(self, storage: LocalStorageAdapter):
        """First delete removes the file, the second reports absence"""
        record = await storage.upload(
            UploadPayload.from_bytes(PDF_CONTENT, "thesis.pdf", "application/pdf"), folder="thesis/documents"
        )

        assert await storage.delete(record.storage_key) is True
        assert await storage.delete(record.storage_key) is False
        assert not storage.exists(record.storage_key)

    @pytest.mark.asyncio
    async def test_delete_outside_root_refused(self, storage: LocalStorageAdapter):
        """Keys escaping the root are never deleted"""
        assert await storage.delete("../../etc/passwd") is False


class TestPathResolution:
    """Mapping storage keys to filesystem paths"""

    def test_relative_key_inside_root(self, storage: LocalStorageAdapter):
        path = storage.path_for("thesis/documents/a.pdf")
        assert path == (storage.root.resolve() / "thesis" / "documents" / "a.pdf")

    def test_traversal_rejected(self, storage: LocalStorageAdapter):
        with pytest.raises(ValueError):
            storage.path_for("../outside.pdf")

    def test_absolute_key_returned_unchanged(self, storage: LocalStorageAdapter, tmp_path: Path):
        """Older records stored absolute paths"""
        absolute = tmp_path / "legacy" / "thesis.pdf"
        assert storage.path_for(str(absolute)) == absolute

    def test_exists_false_for_escaping_key(self, storage: LocalStorageAdapter):
        assert storage.exists("../../secret") is False
