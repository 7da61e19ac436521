"""
Tests for notification endpoints.
"""

from unittest.mock import MagicMock, patch

from core.config import settings

PREFIX = settings.api_v1_prefix


def send(client, sender, user_ids, header="Jadwal wawancara", body="Cek jadwal Anda"):
    return client.post(
        f"{PREFIX}/notifications",
        headers=sender["headers"],
        json={"user_ids": user_ids, "header": header, "body": body},
    )


class TestInbox:
    """Users read and acknowledge their own notifications."""

    def test_empty_inbox(self, client, guest):
        response = client.get(f"{PREFIX}/notifications", headers=guest["headers"])

        assert response.status_code == 200
        assert response.json()["notifications"] == []
        assert response.json()["unread"] == 0

    def test_send_and_read(self, client, iom, student, other_student):
        response = send(client, iom, [student["id"], other_student["id"], 9999])

        assert response.status_code == 201
        assert response.json()["sent"] == 2
        assert response.json()["skipped_user_ids"] == [9999]

        inbox = client.get(f"{PREFIX}/notifications", headers=student["headers"]).json()
        assert inbox["unread"] == 1
        notification = inbox["notifications"][0]
        assert notification["header"] == "Jadwal wawancara"
        assert notification["has_read"] is False

        read = client.post(f"{PREFIX}/notifications/{notification['id']}/read", headers=student["headers"])
        assert read.status_code == 200
        assert read.json()["notification"]["has_read"] is True
        assert client.get(f"{PREFIX}/notifications", headers=student["headers"]).json()["unread"] == 0

    def test_cannot_read_others_notification(self, client, iom, student, other_student):
        send(client, iom, [student["id"]])
        notification_id = client.get(
            f"{PREFIX}/notifications", headers=student["headers"]
        ).json()["notifications"][0]["id"]

        response = client.post(
            f"{PREFIX}/notifications/{notification_id}/read", headers=other_student["headers"]
        )
        assert response.status_code == 404

    def test_mark_all_read(self, client, iom, student):
        send(client, iom, [student["id"]], header="Satu")
        send(client, iom, [student["id"]], header="Dua")

        response = client.post(f"{PREFIX}/notifications/read-all", headers=student["headers"])

        assert response.json()["updated"] == 2
        assert client.get(f"{PREFIX}/notifications", headers=student["headers"]).json()["unread"] == 0

    def test_students_cannot_send(self, client, student, other_student):
        assert send(client, student, [other_student["id"]]).status_code == 403

    def test_send_requires_recipients(self, client, iom):
        assert send(client, iom, []).status_code == 422


class TestSubscriptions:
    def test_subscribe_then_update(self, client, student):
        body = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "k1", "auth": "a1"}}

        first = client.post(f"{PREFIX}/notifications/subscriptions", headers=student["headers"], json=body)
        body["keys"] = {"p256dh": "k2", "auth": "a2"}
        second = client.post(f"{PREFIX}/notifications/subscriptions", headers=student["headers"], json=body)

        assert first.json()["created"] is True
        assert second.json()["created"] is False
        assert second.json()["subscription_id"] == first.json()["subscription_id"]


class TestBroadcast:
    """Period broadcasts run as a background task."""

    def test_broadcast_queues_task(self, client, iom, current_period):
        with patch("api.routes.v1.notifications.broadcast_period_notification") as task:
            task.delay.return_value = MagicMock(id="task-123")
            response = client.post(
                f"{PREFIX}/notifications/broadcast",
                headers=iom["headers"],
                json={"period_id": current_period, "header": "Pengumuman", "body": "Hasil seleksi"},
            )

        assert response.status_code == 202
        assert response.json()["task_id"] == "task-123"
        task.delay.assert_called_once_with(
            period_id=current_period, header="Pengumuman", body="Hasil seleksi", url=None
        )

    def test_broadcast_forbidden_for_interviewers(self, client, interviewer, current_period):
        with patch("api.routes.v1.notifications.broadcast_period_notification") as task:
            response = client.post(
                f"{PREFIX}/notifications/broadcast",
                headers=interviewer["headers"],
                json={"period_id": current_period, "header": "x", "body": "y"},
            )

        assert response.status_code == 403
        task.delay.assert_not_called()
