"""
Tests for document upload endpoints.

Object storage is replaced by the ``mock_storage`` fixture.
"""

import pytest
from unittest.mock import AsyncMock, patch

from api.services import files as file_service
from core.config import settings
from database.models.files import FileType
from database.models.users import UserRole
from tests.conftest import create_user, register_status

PREFIX = settings.api_v1_prefix


def upload(client, user, file_type="KTP", content=b"%PDF-1.4 scan", filename="ktp budi.pdf"):
    return client.post(
        f"{PREFIX}/files",
        headers=user["headers"],
        data={"file_type": file_type},
        files={"file": (filename, content, "application/pdf")},
    )


class TestFileKeys:
    def test_key_layout(self):
        key = file_service.build_file_key(12, FileType.TRANSKRIP_NILAI, "Nilai Akhir.PDF")
        prefix, rest = key[:36], key[37:]

        assert len(prefix.split("-")) == 5  # uuid4
        assert rest == "12-Transkrip_Nilai.pdf"

    def test_key_without_extension(self):
        assert file_service.build_file_key(3, FileType.CV, None).endswith("-3-CV.bin")

    def test_file_types(self):
        types = file_service.list_file_types()
        assert {"key": "Surat_Rekomendasi", "title": "Surat Rekomendasi"} in types
        assert len(types) == len(FileType)


class TestUpload:
    """Test uploading and replacing documents."""

    def test_upload(self, client, student, mock_storage):
        response = upload(client, student)

        assert response.status_code == 201
        data = response.json()
        assert data["replaced"] is False
        assert data["file"]["file_type"] == "KTP"
        assert data["file"]["original_name"] == "ktp_budi.pdf"
        assert data["file"]["size"] == len(b"%PDF-1.4 scan")
        assert data["file"]["url"].startswith("https://storage.test/")

        mock_storage.upload.assert_awaited_once()
        args, kwargs = mock_storage.upload.call_args
        assert args[0] == b"%PDF-1.4 scan"
        assert args[1].endswith(f"-{student['id']}-KTP.pdf")
        assert kwargs["content_type"] == "application/pdf"

    def test_replace_deletes_old_object(self, client, student, mock_storage):
        first = upload(client, student).json()["file"]
        second = upload(client, student, content=b"second version").json()

        assert second["replaced"] is True
        assert second["file"]["id"] == first["id"]
        assert second["file"]["file_key"] != first["file_key"]
        mock_storage.delete.assert_awaited_once_with(first["file_key"])

    def test_empty_file(self, client, student, mock_storage):
        response = upload(client, student, content=b"")

        assert response.status_code == 400
        mock_storage.upload.assert_not_called()

    def test_oversized_file(self, client, student, mock_storage):
        with patch.object(settings, "max_upload_size_mb", 0):
            response = upload(client, student, content=b"x" * 10)

        assert response.status_code == 400
        assert "MB limit" in response.json()["error"]["message"]

    def test_unknown_file_type(self, client, student, mock_storage):
        response = upload(client, student, file_type="Passport")
        assert response.status_code == 422

    def test_upload_without_profile(self, client, mock_storage):
        newcomer = create_user(UserRole.MAHASISWA)
        response = upload(client, newcomer)

        assert response.status_code == 400
        mock_storage.upload.assert_not_called()

    def test_staff_cannot_upload(self, client, iom, mock_storage):
        assert upload(client, iom).status_code == 403

    def test_storage_failure(self, client, student, mock_storage):
        from botocore.exceptions import ClientError

        mock_storage.upload = AsyncMock(
            side_effect=ClientError({"Error": {"Code": "500", "Message": "down"}}, "PutObject")
        )
        response = upload(client, student)

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "STORAGE_ERROR"

    def test_failed_save_removes_uploaded_object(self, client, student, mock_storage):
        """A concurrent first upload of the same type loses on the unique constraint."""
        from sqlalchemy.exc import IntegrityError

        failing_commit = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("uq_file_student_type"))
        )
        with patch("sqlalchemy.ext.asyncio.AsyncSession.commit", failing_commit):
            response = upload(client, student)

        assert response.status_code == 409
        uploaded_key = mock_storage.upload.call_args.args[1]
        mock_storage.delete.assert_awaited_once_with(uploaded_key)

        listing = client.get(f"{PREFIX}/files/me", headers=student["headers"]).json()
        assert listing["files"] == []


class TestListing:
    def test_list_own_files(self, client, student, mock_storage):
        upload(client, student, file_type="KTP")
        upload(client, student, file_type="CV")

        response = client.get(f"{PREFIX}/files/me", headers=student["headers"])

        assert response.status_code == 200
        assert {f["file_type"] for f in response.json()["files"]} == {"KTP", "CV"}

    def test_interviewer_lists_student_files(self, client, interviewer, student, mock_storage):
        upload(client, student)

        response = client.get(f"{PREFIX}/files/student/{student['id']}", headers=interviewer["headers"])

        assert response.status_code == 200
        assert len(response.json()["files"]) == 1

    def test_student_cannot_list_others(self, client, student, other_student, mock_storage):
        response = client.get(f"{PREFIX}/files/student/{other_student['id']}", headers=student["headers"])
        assert response.status_code == 403

    def test_period_files(self, client, iom, student, other_student, current_period, mock_storage):
        register_status(student["id"], current_period)
        register_status(other_student["id"], current_period)
        upload(client, student)

        response = client.get(f"{PREFIX}/files", headers=iom["headers"])

        assert response.status_code == 200
        students = {s["student_id"]: s for s in response.json()["students"]}
        assert len(students[student["id"]]["files"]) == 1
        assert students[other_student["id"]]["files"] == []

    def test_period_files_interviewer_forbidden(self, client, interviewer, current_period, mock_storage):
        assert client.get(f"{PREFIX}/files", headers=interviewer["headers"]).status_code == 403


class TestDelete:
    def test_owner_deletes(self, client, student, mock_storage):
        record = upload(client, student).json()["file"]

        response = client.delete(f"{PREFIX}/files/{record['id']}", headers=student["headers"])

        assert response.status_code == 200
        mock_storage.delete.assert_awaited_with(record["file_key"])
        assert client.get(f"{PREFIX}/files/me", headers=student["headers"]).json()["files"] == []

    def test_iom_deletes_any(self, client, iom, student, mock_storage):
        record = upload(client, student).json()["file"]
        response = client.delete(f"{PREFIX}/files/{record['id']}", headers=iom["headers"])
        assert response.status_code == 200

    def test_other_student_cannot_delete(self, client, student, other_student, mock_storage):
        record = upload(client, student).json()["file"]
        response = client.delete(f"{PREFIX}/files/{record['id']}", headers=other_student["headers"])

        assert response.status_code == 403
        mock_storage.delete.assert_not_called()

    def test_delete_missing(self, client, iom, mock_storage):
        assert client.delete(f"{PREFIX}/files/999", headers=iom["headers"]).status_code == 404


@pytest.mark.asyncio
class TestFileService:
    """Service-level checks without HTTP."""

    async def test_get_file_has_no_url(self, student, mock_storage):
        uploaded = await file_service.upload_file(
            student["id"], FileType.KTM, b"card", "ktm.png", "image/png"
        )
        result = await file_service.get_file(uploaded["file"]["id"])

        assert result["success"] is True
        assert "url" not in result["file"]
        assert result["file"]["content_type"] == "image/png"
