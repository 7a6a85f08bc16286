"""Integration tests for the HTTP API

Tests the complete thesis lifecycle over HTTP:
- Create, upload, submit, review, publish
- Public and restricted retrieval with usage counters
- Error payloads for workflow, permission, storage and integrity failures
- Calendar conflict reporting and attachments
- Health endpoint
"""

import io
import uuid

import pytest

from thesisrepo.models.thesis import Thesis


pytestmark = pytest.mark.integration

PDF_CONTENT = b"%PDF-1.4\n%\xE2\xE3\xCF\xD3\nthesis body\n%%EOF\n"


def pdf_file(name: str = "thesis.pdf", content: bytes = PDF_CONTENT):
    return (name, io.BytesIO(content), "application/pdf")


class TestThesisLifecycle:
    """Create → upload → submit → approve → publish → download"""

    @pytest.fixture
    def thesis(self, api_client, auth_headers, student):
        response = api_client.post(
            "/api/v1/theses",
            json={"title": "Graph Neural Networks for Routing", "abstract": "We route packets."},
            headers=auth_headers(student),
        )
        assert response.status_code == 201
        return response.json()

    def upload(self, api_client, headers, thesis_id, file=None):
        return api_client.post(
            f"/api/v1/theses/{thesis_id}/document",
            files={"file": file or pdf_file()},
            headers=headers,
        )

    def transition(self, api_client, headers, thesis_id, status, **body):
        return api_client.post(
            f"/api/v1/theses/{thesis_id}/transition", json={"status": status, **body}, headers=headers
        )

    def test_create(self, thesis):
        assert thesis["status"] == "DRAFT"
        assert thesis["department"] == "CS"
        assert thesis["authors"] == ["alice"]
        assert thesis["is_public"] is False

    def test_full_lifecycle(self, api_client, auth_headers, session_factory, thesis, student, adviser, admin):
        thesis_id = thesis["id"]

        uploaded = self.upload(api_client, auth_headers(student), thesis_id)
        assert uploaded.status_code == 201
        record = uploaded.json()
        assert record["location_kind"] == "LOCAL"
        assert record["original_name"] == "thesis.pdf"
        assert len(record["checksum"]) == 64

        submitted = self.transition(api_client, auth_headers(student), thesis_id, "UNDER_REVIEW")
        assert submitted.status_code == 200
        assert submitted.json()["warnings"] == []

        approved = self.transition(
            api_client, auth_headers(adviser), thesis_id, "APPROVED", review_comments="Clear and novel", review_score=88
        )
        assert approved.status_code == 200
        assert approved.json()["thesis"]["reviewer_id"] == "bob"
        assert approved.json()["thesis"]["review_score"] == 88

        published = self.transition(api_client, auth_headers(admin), thesis_id, "PUBLISHED")
        assert published.status_code == 200
        assert published.json()["thesis"]["is_public"] is True

        # Published theses are public
        download = api_client.get(f"/api/v1/theses/{thesis_id}/download")
        assert download.status_code == 200
        assert download.content == PDF_CONTENT
        assert download.headers["content-type"].startswith("application/pdf")
        assert download.headers["content-disposition"] == "attachment; filename*=UTF-8''thesis.pdf"
        assert download.headers["x-content-type-options"] == "nosniff"

        view = api_client.get(f"/api/v1/theses/{thesis_id}/view")
        assert view.status_code == 200
        assert view.headers["content-disposition"].startswith("inline")

        db = session_factory()
        try:
            stored = db.get(Thesis, uuid.UUID(thesis_id))
            assert stored.download_count == 1
            assert stored.view_count == 1
        finally:
            db.close()

    def test_submit_without_document_warns(self, api_client, auth_headers, thesis, student):
        response = self.transition(api_client, auth_headers(student), thesis["id"], "UNDER_REVIEW")

        assert response.status_code == 200
        assert response.json()["warnings"] == ["Thesis submitted without a main document"]

    def test_invalid_transition_payload(self, api_client, auth_headers, thesis, student):
        self.transition(api_client, auth_headers(student), thesis["id"], "UNDER_REVIEW")

        response = self.transition(api_client, auth_headers(student), thesis["id"], "APPROVED")

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["from_status"] == "UNDER_REVIEW"
        assert body["to_status"] == "APPROVED"
        assert "ADVISER" in body["reason"]

    def test_reopen_after_rejection(self, api_client, auth_headers, thesis, student, adviser):
        self.transition(api_client, auth_headers(student), thesis["id"], "UNDER_REVIEW")
        self.transition(api_client, auth_headers(adviser), thesis["id"], "REJECTED", review_comments="Incomplete")

        response = api_client.post(f"/api/v1/theses/{thesis['id']}/reopen", headers=auth_headers(student))

        assert response.status_code == 200
        assert response.json()["status"] == "DRAFT"
        assert response.json()["review_comments"] is None

    def test_unsupported_main_document_type(self, api_client, auth_headers, thesis, student):
        response = self.upload(
            api_client, auth_headers(student), thesis["id"], file=("figure.png", io.BytesIO(b"\x89PNG"), "image/png")
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_document"

    def test_empty_upload_rejected(self, api_client, auth_headers, thesis, student, storage_config):
        response = self.upload(api_client, auth_headers(student), thesis["id"], file=pdf_file(content=b""))

        assert response.status_code == 400
        assert list(storage_config.staging_dir.glob("*.upload")) == []

    def test_non_author_cannot_upload(self, api_client, auth_headers, thesis, adviser):
        response = self.upload(api_client, auth_headers(adviser), thesis["id"])

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_draft_not_public(self, api_client, auth_headers, thesis, student, other_department_adviser):
        self.upload(api_client, auth_headers(student), thesis["id"])

        assert api_client.get(f"/api/v1/theses/{thesis['id']}/download").status_code == 403
        assert api_client.get(
            f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(other_department_adviser)
        ).status_code == 403
        assert api_client.get(
            f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(student)
        ).status_code == 200

    def test_read_metadata_respects_visibility(
        self, api_client, auth_headers, thesis, student, adviser, admin, other_department_adviser
    ):
        url = f"/api/v1/theses/{thesis['id']}"

        own = api_client.get(url, headers=auth_headers(student))
        assert own.status_code == 200
        assert own.json()["title"] == "Graph Neural Networks for Routing"
        assert own.json()["status"] == "DRAFT"
        assert api_client.get(url, headers=auth_headers(adviser)).status_code == 200
        assert api_client.get(url).status_code == 403
        stranger = api_client.get(url, headers=auth_headers(other_department_adviser))
        assert stranger.status_code == 403
        assert stranger.json()["error"] == "permission_denied"

        self.upload(api_client, auth_headers(student), thesis["id"])
        self.transition(api_client, auth_headers(student), thesis["id"], "UNDER_REVIEW")
        self.transition(api_client, auth_headers(adviser), thesis["id"], "APPROVED", review_comments="Good")
        self.transition(api_client, auth_headers(admin), thesis["id"], "PUBLISHED")

        public = api_client.get(url)
        assert public.status_code == 200
        assert public.json()["status"] == "PUBLISHED"
        assert public.json()["view_count"] == 0

    def test_read_unknown_thesis(self, api_client, auth_headers, student):
        response = api_client.get(f"/api/v1/theses/{uuid.uuid4()}", headers=auth_headers(student))
        assert response.status_code == 404

    def test_missing_file_reports_reason(self, api_client, auth_headers, thesis, student, storage_router):
        record = self.upload(api_client, auth_headers(student), thesis["id"]).json()
        storage_router.local.path_for(record["storage_key"]).unlink()

        response = api_client.get(f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(student))

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "document_not_found"
        assert body["reason"] == "MISSING_UPLOAD"
        assert body["hint"]

    def test_corrupted_file_not_served(self, api_client, auth_headers, thesis, student, storage_router, session_factory):
        record = self.upload(api_client, auth_headers(student), thesis["id"]).json()
        path = storage_router.local.path_for(record["storage_key"])
        path.write_bytes(PDF_CONTENT.replace(b"thesis", b"thesiz"))

        response = api_client.get(f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(student))

        assert response.status_code == 500
        assert response.json()["error"] == "integrity_failure"
        assert b"thesiz" not in response.content

        db = session_factory()
        try:
            assert db.get(Thesis, uuid.UUID(thesis["id"])).download_count == 0
        finally:
            db.close()

    def test_no_main_document(self, api_client, auth_headers, thesis, student):
        response = api_client.get(f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(student))
        assert response.status_code == 404

    def test_unknown_thesis(self, api_client, auth_headers, student):
        response = api_client.get(f"/api/v1/theses/{uuid.uuid4()}/download", headers=auth_headers(student))
        assert response.status_code == 404

    def test_missing_gateway_headers(self, api_client):
        response = api_client.post("/api/v1/theses", json={"title": "Anonymous"})
        assert response.status_code == 401

    def test_delete_draft(self, api_client, auth_headers, thesis, student, storage_router):
        record = self.upload(api_client, auth_headers(student), thesis["id"]).json()

        response = api_client.delete(f"/api/v1/theses/{thesis['id']}", headers=auth_headers(student))

        assert response.status_code == 204
        assert not storage_router.local.exists(record["storage_key"])
        assert api_client.get(f"/api/v1/theses/{thesis['id']}/download", headers=auth_headers(student)).status_code == 404


class TestSupplementaryFiles:

    @pytest.fixture
    def thesis_id(self, api_client, auth_headers, student):
        response = api_client.post("/api/v1/theses", json={"title": "Datasets"}, headers=auth_headers(student))
        return response.json()["id"]

    def test_upload_and_download(self, api_client, auth_headers, thesis_id, student):
        response = api_client.post(
            f"/api/v1/theses/{thesis_id}/supplementary",
            files=[
                ("files", ("data.txt", io.BytesIO(b"id,value\n1,2\n"), "text/plain")),
                ("files", ("figure.png", io.BytesIO(b"\x89PNG\r\n"), "image/png")),
            ],
            headers=auth_headers(student),
        )

        assert response.status_code == 201
        assert response.json()["total"] == 2

        download = api_client.get(f"/api/v1/theses/{thesis_id}/supplementary/0/download", headers=auth_headers(student))
        assert download.status_code == 200
        assert download.content == b"id,value\n1,2\n"

        missing = api_client.get(f"/api/v1/theses/{thesis_id}/supplementary/5/download", headers=auth_headers(student))
        assert missing.status_code == 404

    def test_limit_enforced(self, api_client, auth_headers, thesis_id, student, storage_router):
        files = [("files", (f"f{i}.txt", io.BytesIO(b"x"), "text/plain")) for i in range(4)]

        response = api_client.post(
            f"/api/v1/theses/{thesis_id}/supplementary", files=files, headers=auth_headers(student)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_document"
        assert not (storage_router.local.root / "thesis" / "supplementary").exists()
        assert list(storage_router.config.staging_dir.glob("*.upload")) == []


class TestCalendar:

    def event(self, title, start, end, department=None):
        body = {"title": title, "event_type": "defense", "start_time": start, "end_time": end}
        if department:
            body["department"] = department
        return body

    def test_conflicts_reported_per_department(self, api_client, auth_headers, adviser, other_department_adviser):
        first = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("CS defense A", "2026-06-01T10:00:00Z", "2026-06-01T12:00:00Z"),
            headers=auth_headers(adviser),
        )
        assert first.status_code == 201
        assert first.json()["conflicts"] == []

        second = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("CS defense B", "2026-06-01T11:00:00Z", "2026-06-01T13:00:00Z"),
            headers=auth_headers(adviser),
        )
        assert second.status_code == 201
        assert [c["id"] for c in second.json()["conflicts"]] == [first.json()["event"]["id"]]

        other = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("IT defense", "2026-06-01T11:00:00Z", "2026-06-01T13:00:00Z"),
            headers=auth_headers(other_department_adviser),
        )
        assert other.json()["event"]["department"] == "IT"
        assert other.json()["conflicts"] == []

    def test_back_to_back_is_not_a_conflict(self, api_client, auth_headers, adviser):
        api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Morning", "2026-06-02T10:00:00Z", "2026-06-02T12:00:00Z"),
            headers=auth_headers(adviser),
        )
        response = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Noon", "2026-06-02T12:00:00Z", "2026-06-02T13:00:00Z"),
            headers=auth_headers(adviser),
        )

        assert response.json()["conflicts"] == []

    def test_update_excludes_itself(self, api_client, auth_headers, adviser):
        created = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Defense", "2026-06-03T10:00:00Z", "2026-06-03T12:00:00Z"),
            headers=auth_headers(adviser),
        ).json()["event"]

        response = api_client.put(
            f"/api/v1/calendar/events/{created['id']}",
            json={"start_time": "2026-06-03T11:00:00Z", "end_time": "2026-06-03T13:00:00Z"},
            headers=auth_headers(adviser),
        )

        assert response.status_code == 200
        assert response.json()["conflicts"] == []
        assert response.json()["event"]["start_time"].startswith("2026-06-03T11:00:00")

    def test_end_before_start(self, api_client, auth_headers, adviser):
        response = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Backwards", "2026-06-01T12:00:00Z", "2026-06-01T10:00:00Z"),
            headers=auth_headers(adviser),
        )
        assert response.status_code == 422

    def test_students_cannot_schedule(self, api_client, auth_headers, student):
        response = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Party", "2026-06-01T12:00:00Z", None),
            headers=auth_headers(student),
        )
        assert response.status_code == 403

    def test_other_department_forbidden(self, api_client, auth_headers, adviser):
        response = api_client.post(
            "/api/v1/calendar/events",
            json=self.event("Foreign", "2026-06-01T12:00:00Z", None, department="IT"),
            headers=auth_headers(adviser),
        )
        assert response.status_code == 403


class TestCalendarAttachments:

    @pytest.fixture
    def event_id(self, api_client, auth_headers, adviser):
        response = api_client.post(
            "/api/v1/calendar/events",
            json={"title": "Defense", "event_type": "defense", "start_time": "2026-07-01T10:00:00Z"},
            headers=auth_headers(adviser),
        )
        assert response.status_code == 201
        return response.json()["event"]["id"]

    def attach(self, api_client, headers, event_id, files):
        return api_client.post(
            f"/api/v1/calendar/events/{event_id}/attachments",
            files=[("files", f) for f in files],
            headers=headers,
        )

    def test_creator_uploads_attachments(self, api_client, auth_headers, event_id, adviser, storage_router):
        response = self.attach(
            api_client,
            auth_headers(adviser),
            event_id,
            [pdf_file("slides.pdf"), ("agenda.txt", io.BytesIO(b"10:00 opening\n"), "text/plain")],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["total"] == 2
        assert [f["original_name"] for f in body["files"]] == ["slides.pdf", "agenda.txt"]
        for record in body["files"]:
            assert record["storage_key"].startswith("calendar/attachments/")
            assert record["url"] is None
            assert storage_router.local.exists(record["storage_key"])
        assert list(storage_router.config.staging_dir.glob("*.upload")) == []

        again = self.attach(api_client, auth_headers(adviser), event_id, [pdf_file("minutes.pdf")])
        assert again.json()["total"] == 3

    def test_admin_may_attach(self, api_client, auth_headers, event_id, admin):
        response = self.attach(api_client, auth_headers(admin), event_id, [pdf_file()])
        assert response.status_code == 201

    def test_others_cannot_attach(
        self, api_client, auth_headers, event_id, student, other_department_adviser, storage_router
    ):
        for principal in (student, other_department_adviser):
            response = self.attach(api_client, auth_headers(principal), event_id, [pdf_file()])
            assert response.status_code == 403
            assert response.json()["error"] == "permission_denied"

        assert not (storage_router.local.root / "calendar" / "attachments").exists()
        assert list(storage_router.config.staging_dir.glob("*.upload")) == []

    def test_limit_enforced(self, api_client, auth_headers, event_id, adviser, storage_router):
        files = [pdf_file(f"part{i}.pdf") for i in range(4)]

        response = self.attach(api_client, auth_headers(adviser), event_id, files)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_document"
        assert not (storage_router.local.root / "calendar" / "attachments").exists()
        assert list(storage_router.config.staging_dir.glob("*.upload")) == []

    def test_archives_rejected(self, api_client, auth_headers, event_id, adviser):
        response = self.attach(
            api_client, auth_headers(adviser), event_id, [("bundle.zip", io.BytesIO(b"PK\x03\x04"), "application/zip")]
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_document"

    def test_unknown_event(self, api_client, auth_headers, adviser):
        response = self.attach(api_client, auth_headers(adviser), uuid.uuid4(), [pdf_file()])
        assert response.status_code == 404


class TestHealth:

    def test_health_reports_storage_backend(self, api_client):
        response = api_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storage_backend"] == "local"
        assert body["components"]["database"]["status"] == "healthy"

    def test_ready(self, api_client):
        assert api_client.get("/ready").json()["status"] == "ready"

    def test_metrics(self, api_client):
        response = api_client.get("/metrics")
        assert response.status_code == 200
        assert b"thesisrepo_documents_uploaded_total" in response.content

    def test_request_id_echoed(self, api_client):
        response = api_client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
