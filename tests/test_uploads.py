"""
Upload tests — progress photos through multipart saves, served back by reference.
"""

import io

import pytest

from pmis.models import db
from pmis.models.progress import ProgressRecord

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _image(name="site.png", content=PNG_BYTES):
    return (io.BytesIO(content), name)


@pytest.fixture()
def draft_id(client, physical, project, headers_for):
    res = client.post("/api/progress", json={"project_id": project.id}, headers=headers_for(physical))
    return res.get_json()["id"]


class TestProgressImages:
    def test_create_with_image_and_serve(self, client, physical, project, headers_for, upload_dir):
        res = client.post(
            "/api/progress",
            data={"project_id": project.id, "progress_name": "June", "physical_progress_image1": _image()},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 201, res.get_json()
        reference = res.get_json()["physical_progress_image1"]
        assert reference.endswith(".png")
        assert (upload_dir / reference).exists()

        served = client.get(f"/api/uploads/{reference}")
        assert served.status_code == 200
        assert served.get_data() == PNG_BYTES
        served.close()

    def test_non_ascii_filename_keeps_extension(self, client, physical, draft_id, headers_for, upload_dir):
        res = client.put(
            f"/api/progress/{draft_id}",
            data={"physical_progress_image1": _image("ඡායාරූපය.jpg")},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 200, res.get_json()
        reference = res.get_json()["physical_progress_image1"]
        assert reference.endswith(".jpg")
        assert (upload_dir / reference).exists()

    def test_repeated_form_keys_become_list(self, client, physical, project, headers_for, upload_dir):
        res = client.post(
            "/api/progress",
            data={"project_id": project.id, "contractors": ["ABC Constructions", "Lanka Roads"]},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 201
        assert res.get_json()["contractors"] == '["ABC Constructions", "Lanka Roads"]'

    def test_single_form_key_is_stored_as_list(self, client, physical, project, headers_for, upload_dir):
        res = client.post(
            "/api/progress",
            data={"project_id": project.id, "contractors": "ABC Constructions", "consultants": "Lanka Consult"},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["contractors"] == '["ABC Constructions"]'
        assert body["consultants"] == '["Lanka Consult"]'

    def test_rejects_disallowed_extension(self, client, physical, draft_id, headers_for, upload_dir):
        res = client.put(
            f"/api/progress/{draft_id}",
            data={"physical_progress_image2": _image("payload.exe", b"MZ")},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 400
        assert res.get_json()["error"] == "Only image and PDF files are allowed!"
        assert db.session.get(ProgressRecord, draft_id).physical_progress_image2 is None

    def test_rejects_oversize_file(self, client, app, physical, draft_id, headers_for, upload_dir):
        previous = app.config["MAX_UPLOAD_BYTES"]
        app.config["MAX_UPLOAD_BYTES"] = 16
        try:
            res = client.put(
                f"/api/progress/{draft_id}",
                data={"physical_progress_image1": _image()},
                content_type="multipart/form-data",
                headers=headers_for(physical),
            )
        finally:
            app.config["MAX_UPLOAD_BYTES"] = previous
        assert res.status_code == 413
        assert res.get_json()["code"] == "ERR_PAYLOAD_TOO_LARGE"

    def test_financial_staff_cannot_upload_photos(self, client, financial, draft_id, headers_for, upload_dir):
        res = client.put(
            f"/api/progress/{draft_id}",
            data={"physical_progress_image3": _image()},
            content_type="multipart/form-data",
            headers=headers_for(financial),
        )
        assert res.status_code == 403
        assert res.get_json()["details"]["fields"] == ["physical_progress_image3"]
        assert not upload_dir.exists() or not any(upload_dir.iterdir())

    def test_empty_file_part_is_skipped(self, client, physical, draft_id, headers_for, upload_dir):
        res = client.put(
            f"/api/progress/{draft_id}",
            data={"location": "Badulla", "physical_progress_image1": (io.BytesIO(b""), "")},
            content_type="multipart/form-data",
            headers=headers_for(physical),
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["location"] == "Badulla"
        assert body["physical_progress_image1"] is None


class TestServe:
    def test_unknown_reference(self, client, upload_dir):
        assert client.get("/api/uploads/1700000000000-1.png").status_code == 404

    def test_path_traversal_refused(self, client, upload_dir):
        assert client.get("/api/uploads/../config.py").status_code == 404
