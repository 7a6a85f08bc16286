"""Unit tests for DocumentResolver

Covers local round trips, recovery of moved files, not-found reasons,
integrity failures and remote redirects.
"""

import shutil
from dataclasses import replace
from pathlib import Path

import pytest

from thesisrepo.documents.resolver import DocumentResolver
from thesisrepo.domain.documents import (
    DocumentIntent,
    DocumentNotFoundError,
    DocumentRecord,
    IntegrityFailure,
    LocationKind,
    NotFoundReason,
)
from thesisrepo.domain.documents.ports import UploadPayload
from thesisrepo.infrastructure.storage.fallback import FALLBACK_BACKEND
from thesisrepo.infrastructure.storage.router import StorageRouter
from thesisrepo.infrastructure.storage.storage_config import StorageBackendType, StorageConfig


PDF_CONTENT = b"%PDF-1.4\nthesis body\n"


def make_router(tmp_path: Path, ephemeral: bool = False) -> StorageRouter:
    return StorageRouter(
        StorageConfig(
            backend_type=StorageBackendType.LOCAL,
            uploads_root=tmp_path / "uploads",
            staging_dir=tmp_path / "uploads" / ".staging",
                ephemeral=ephemeral,
        )
    )


async def store(router: StorageRouter, content: bytes = PDF_CONTENT) -> DocumentRecord:
    return await router.upload(UploadPayload.from_bytes(content, "thesis.pdf", "application/pdf"), "thesis/documents")


@pytest.fixture
def router(tmp_path) -> StorageRouter:
    return make_router(tmp_path)


class TestLocalResolution:

    @pytest.mark.asyncio
    async def test_round_trip(self, router):
        record = await store(router)

        resolved = DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)

        assert resolved.content == PDF_CONTENT
        assert not resolved.is_redirect
        assert resolved.recovered_from is None

    @pytest.mark.asyncio
    async def test_recovers_moved_file_by_basename(self, router):
        record = await store(router)
        original = router.local.path_for(record.storage_key)
        moved_dir = router.local.root / "legacy"
        moved_dir.mkdir()
        shutil.move(str(original), str(moved_dir / original.name))

        resolved = DocumentResolver(router).resolve(record, DocumentIntent.VIEW)

        assert resolved.content == PDF_CONTENT
        assert resolved.recovered_from == moved_dir / original.name

    @pytest.mark.asyncio
    async def test_staging_dir_not_searched(self, router):
        record = await store(router)
        original = router.local.path_for(record.storage_key)
        staging = router.config.staging_dir
        staging.mkdir(parents=True)
        shutil.move(str(original), str(staging / original.name))

        with pytest.raises(DocumentNotFoundError):
            DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)

    @pytest.mark.asyncio
    async def test_corrupted_byte_raises_integrity_failure(self, router):
        record = await store(router)
        path = router.local.path_for(record.storage_key)
        corrupted = bytearray(path.read_bytes())
        corrupted[0] ^= 0xFF
        path.write_bytes(bytes(corrupted))

        with pytest.raises(IntegrityFailure) as exc_info:
            DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)

        assert exc_info.value.expected == record.checksum
        assert exc_info.value.actual != record.checksum

    @pytest.mark.asyncio
    async def test_record_without_checksum_is_served(self, router):
        """Legacy records without a checksum are served unverified"""
        record = replace(await store(router), checksum=None)
        assert DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD).content == PDF_CONTENT


class TestNotFoundReasons:

    @pytest.mark.asyncio
    async def test_missing_upload(self, router):
        record = await store(router)
        router.local.path_for(record.storage_key).unlink()

        with pytest.raises(DocumentNotFoundError) as exc_info:
            DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)

        assert exc_info.value.reason == NotFoundReason.MISSING_UPLOAD
        assert "re-uploaded" in exc_info.value.hint

    @pytest.mark.asyncio
    async def test_ephemeral_deployment(self, tmp_path):
        router = make_router(tmp_path, ephemeral=True)
        record = await store(router)
        router.local.path_for(record.storage_key).unlink()

        with pytest.raises(DocumentNotFoundError) as exc_info:
            DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)

        assert exc_info.value.reason == NotFoundReason.EPHEMERAL_STORAGE

    @pytest.mark.asyncio
    async def test_fallback_record(self, router):
        record = replace(await store(router), backend=FALLBACK_BACKEND)
        router.local.path_for(record.storage_key).unlink()

        with pytest.raises(DocumentNotFoundError) as exc_info:
            DocumentResolver(router).resolve(record, DocumentIntent.VIEW)

        assert exc_info.value.reason == NotFoundReason.EPHEMERAL_STORAGE
        assert exc_info.value.to_dict()["backend"] == FALLBACK_BACKEND

    def test_key_outside_root(self, router):
        record = DocumentRecord(
            storage_key="../../etc/passwd",
            original_name="passwd",
            mime_type="application/pdf",
            size_bytes=1,
            location_kind=LocationKind.LOCAL,
            backend="local",
        )

        with pytest.raises(DocumentNotFoundError):
            DocumentResolver(router).resolve(record, DocumentIntent.DOWNLOAD)


class TestRemoteResolution:

    def test_redirects_to_recorded_url(self, router):
        record = DocumentRecord(
            storage_key="thesis/documents/a.pdf",
            original_name="a.pdf",
            mime_type="application/pdf",
            size_bytes=10,
            location_kind=LocationKind.REMOTE_URL,
            backend="s3",
            url="https://bucket.s3.amazonaws.com/thesis/documents/a.pdf",
        )

        resolved = DocumentResolver(router).resolve(record, DocumentIntent.VIEW)

        assert resolved.is_redirect
        assert resolved.redirect_url == record.url
        assert resolved.content is None

    def test_redirect_without_any_url_is_missing(self, router):
        record = DocumentRecord(
            storage_key="thesis/documents/a.pdf",
            original_name="a.pdf",
            mime_type="application/pdf",
            size_bytes=10,
            location_kind=LocationKind.REMOTE_URL,
            backend="local",
        )

        with pytest.raises(DocumentNotFoundError) as exc_info:
            DocumentResolver(router).resolve(record, DocumentIntent.VIEW)

        assert exc_info.value.reason == NotFoundReason.MISSING_UPLOAD
