"""
Tests for period registration, screening and result endpoints.
"""

from core.config import settings
from database.models.users import UserRole
from tests.conftest import create_period, create_user, register_status

PREFIX = settings.api_v1_prefix


class TestRegistration:
    """Students register once per open period."""

    def test_register_current_period(self, client, student, current_period):
        response = client.post(f"{PREFIX}/status", headers=student["headers"], json={})

        assert response.status_code == 201
        assert response.json()["status"] == {
            "student_id": student["id"],
            "period_id": current_period,
            "pass_ditmawa": False,
            "pass_iom": False,
            "pass_interview": False,
            "amount": None,
        }

    def test_register_twice(self, client, student, current_period):
        client.post(f"{PREFIX}/status", headers=student["headers"], json={})
        response = client.post(f"{PREFIX}/status", headers=student["headers"], json={})
        assert response.status_code == 409

    def test_register_closed_period(self, client, student):
        create_period(is_open=False)
        response = client.post(f"{PREFIX}/status", headers=student["headers"], json={})
        assert response.status_code == 400

    def test_register_without_period(self, client, student):
        response = client.post(f"{PREFIX}/status", headers=student["headers"], json={})
        assert response.status_code == 404

    def test_register_without_profile(self, client, current_period):
        newcomer = create_user(UserRole.MAHASISWA)
        response = client.post(f"{PREFIX}/status", headers=newcomer["headers"], json={})
        assert response.status_code == 400

    def test_register_explicit_period(self, client, student, current_period):
        other = create_period(name="2026/2027", is_current=False, is_open=False)
        response = client.post(
            f"{PREFIX}/status", headers=student["headers"], json={"period_id": other}
        )
        assert response.status_code == 400

    def test_only_students_register(self, client, iom, current_period):
        response = client.post(f"{PREFIX}/status", headers=iom["headers"], json={})
        assert response.status_code == 403

    def test_check_registration(self, client, student, current_period):
        before = client.get(f"{PREFIX}/status/check-registration", headers=student["headers"])
        client.post(f"{PREFIX}/status", headers=student["headers"], json={})
        after = client.get(f"{PREFIX}/status/check-registration", headers=student["headers"])

        assert before.json()["exists"] is False
        assert after.json()["exists"] is True
        assert after.json()["period_id"] == current_period


class TestScreening:
    """IOM staff record screening outcomes in batches."""

    def test_update_screening(self, client, iom, student, other_student, current_period):
        register_status(student["id"], current_period)
        register_status(other_student["id"], current_period)

        response = client.patch(
            f"{PREFIX}/status/screening",
            headers=iom["headers"],
            json={
                "period_id": current_period,
                "updates": [
                    {"student_id": student["id"], "pass_ditmawa": True, "pass_iom": True},
                    {"student_id": other_student["id"], "pass_ditmawa": True},
                ],
            },
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 2
        statuses = {s["student_id"]: s for s in response.json()["statuses"]}
        assert statuses[student["id"]]["pass_iom"] is True
        assert statuses[other_student["id"]]["pass_iom"] is False
        assert statuses[other_student["id"]]["pass_ditmawa"] is True

    def test_screening_is_all_or_nothing(self, client, iom, student, other_student, current_period):
        register_status(student["id"], current_period)

        response = client.patch(
            f"{PREFIX}/status/screening",
            headers=iom["headers"],
            json={
                "period_id": current_period,
                "updates": [
                    {"student_id": student["id"], "pass_iom": True},
                    {"student_id": other_student["id"], "pass_iom": True},
                ],
            },
        )

        assert response.status_code == 404
        assert response.json()["error"]["details"]["missing_student_ids"] == [other_student["id"]]

        status = client.get(
            f"{PREFIX}/status/{student['id']}/{current_period}", headers=iom["headers"]
        )
        assert status.json()["pass_iom"] is False

    def test_screening_requires_iom(self, client, interviewer, current_period):
        response = client.patch(
            f"{PREFIX}/status/screening",
            headers=interviewer["headers"],
            json={"period_id": current_period, "updates": [{"student_id": 1, "pass_iom": True}]},
        )
        assert response.status_code == 403

    def test_scoring_candidates(self, client, interviewer, student, other_student, current_period):
        register_status(student["id"], current_period, pass_iom=True)
        register_status(other_student["id"], current_period, pass_iom=False)

        response = client.get(f"{PREFIX}/status/scoring", headers=interviewer["headers"])

        assert response.status_code == 200
        candidates = response.json()["candidates"]
        assert [c["student_id"] for c in candidates] == [student["id"]]
        assert candidates[0]["nim"] == "19723001"
        assert candidates[0]["name"] == "Budi Santoso"


class TestResults:
    """Interview outcome and approved amount."""

    def test_update_result(self, client, iom, student, current_period):
        register_status(student["id"], current_period)

        response = client.patch(
            f"{PREFIX}/status/{student['id']}/{current_period}",
            headers=iom["headers"],
            json={"pass_interview": True, "amount": "2500000.50"},
        )

        assert response.status_code == 200
        assert response.json()["status"]["pass_interview"] is True
        assert response.json()["status"]["amount"] == 2500000.5

    def test_negative_amount(self, client, iom, student, current_period):
        register_status(student["id"], current_period)
        response = client.patch(
            f"{PREFIX}/status/{student['id']}/{current_period}",
            headers=iom["headers"],
            json={"amount": -1},
        )
        assert response.status_code == 422

    def test_result_for_unregistered_student(self, client, iom, student, current_period):
        response = client.patch(
            f"{PREFIX}/status/{student['id']}/{current_period}",
            headers=iom["headers"],
            json={"pass_interview": True},
        )
        assert response.status_code == 404

    def test_student_reads_own_status(self, client, student, other_student, current_period):
        register_status(student["id"], current_period, pass_iom=True)
        register_status(other_student["id"], current_period)

        own = client.get(f"{PREFIX}/status/{student['id']}/{current_period}", headers=student["headers"])
        other = client.get(
            f"{PREFIX}/status/{other_student['id']}/{current_period}", headers=student["headers"]
        )

        assert own.status_code == 200
        assert own.json()["pass_iom"] is True
        assert other.status_code == 403
