"""
Tests for the period report and statistics endpoints.
"""

from decimal import Decimal

from core.config import settings
from database.models.users import UserRole
from tests.conftest import create_period, create_user, register_status

PREFIX = settings.api_v1_prefix


def engineering_student(nim="13523001"):
    return create_user(
        UserRole.MAHASISWA,
        email=f"{nim}@mahasiswa.itb.ac.id",
        name="Dimas Pratama",
        nim=nim,
        faculty="Sekolah Teknik Elektro dan Informatika",
        major="Teknik Informatika",
    )


class TestPeriodReport:
    """Approved amounts for one period."""

    def test_report(self, client, iom, student, other_student, current_period):
        register_status(student["id"], current_period, amount=Decimal("1500000"))
        register_status(other_student["id"], current_period, amount=Decimal("2000000.50"))
        third = engineering_student()
        register_status(third["id"], current_period, amount=Decimal("0"))

        response = client.get(f"{PREFIX}/reports/{current_period}", headers=iom["headers"])

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "2025/2026"
        assert [s["name"] for s in data["students"]] == ["Budi Santoso", "Citra Lestari"]
        assert data["students"][0]["amount"] == 1500000.0
        assert data["students"][0]["nim"] == "19723001"
        assert data["total_amount"] == 3500000.5

    def test_empty_report(self, client, iom, student, current_period):
        register_status(student["id"], current_period)

        data = client.get(f"{PREFIX}/reports/{current_period}", headers=iom["headers"]).json()

        assert data["students"] == []
        assert data["total_amount"] == 0

    def test_unknown_period(self, client, iom):
        assert client.get(f"{PREFIX}/reports/999", headers=iom["headers"]).status_code == 404

    def test_interviewer_forbidden(self, client, interviewer, current_period):
        assert client.get(f"{PREFIX}/reports/{current_period}", headers=interviewer["headers"]).status_code == 403


class TestStatistics:
    """Registration and pass counts."""

    def test_students_per_period_includes_empty(self, client, iom, student, other_student, current_period):
        empty = create_period(name="2024/2025", is_current=False, is_open=False)
        register_status(student["id"], current_period)
        register_status(other_student["id"], current_period)

        response = client.get(f"{PREFIX}/statistics/students-per-period", headers=iom["headers"])

        assert response.status_code == 200
        totals = {row["period_id"]: row["total"] for row in response.json()["data"]}
        assert totals == {current_period: 2, empty: 0}

    def test_passed_per_period(self, client, iom, student, other_student, current_period):
        register_status(
            student["id"], current_period, pass_iom=True, pass_ditmawa=True, amount=Decimal("1000000")
        )
        # Screenings passed but nothing approved
        register_status(other_student["id"], current_period, pass_iom=True, pass_ditmawa=True)
        third = engineering_student()
        register_status(third["id"], current_period, pass_iom=True, amount=Decimal("1000000"))

        response = client.get(f"{PREFIX}/statistics/passed-per-period", headers=iom["headers"])

        assert response.json()["data"] == [
            {"period_id": current_period, "period": "2025/2026", "total": 1}
        ]

    def test_students_by_faculty(self, client, iom, student, other_student, current_period):
        third = engineering_student()
        for user in (student, other_student, third):
            register_status(user["id"], current_period)

        response = client.get(
            f"{PREFIX}/statistics/students-by-faculty/{current_period}", headers=iom["headers"]
        )

        assert response.json()["data"] == [
            {"faculty": "Sekolah Bisnis dan Manajemen", "total": 2},
            {"faculty": "Sekolah Teknik Elektro dan Informatika", "total": 1},
        ]

    def test_passed_by_faculty(self, client, iom, student, current_period):
        third = engineering_student()
        register_status(
            student["id"], current_period, pass_iom=True, pass_ditmawa=True, amount=Decimal("500000")
        )
        register_status(third["id"], current_period)

        response = client.get(
            f"{PREFIX}/statistics/passed-by-faculty/{current_period}", headers=iom["headers"]
        )

        assert response.json()["data"] == [{"faculty": "Sekolah Bisnis dan Manajemen", "total": 1}]

    def test_statistics_forbidden_for_students(self, client, student):
        response = client.get(f"{PREFIX}/statistics/students-per-period", headers=student["headers"])
        assert response.status_code == 403
