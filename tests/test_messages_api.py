import unittest
from unittest import mock

from services.email import clear_email_cache
from services.settings import settings_manager
from tests.base import ApiTestCase

SMTP_KEYS = ("smtp_host", "smtp_port", "smtp_username", "smtp_use_tls", "smtp_from_email")


class MessageApiTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        for key in SMTP_KEYS:
            settings_manager.delete(key)
        clear_email_cache()
        self.setup_admin()
        self.case_id = self.client.post(
            "/api/cases",
            json={"caseNumber": "MC-2024-001", "matter": "Smith vs. Jones Property Dispute"},
        ).get_json()["case"]["id"]

    def tearDown(self) -> None:
        for key in SMTP_KEYS:
            settings_manager.delete(key)
        clear_email_cache()
        super().tearDown()

    def configure_smtp(self) -> None:
        response = self.client.post(
            "/api/admin/email-settings",
            json={"host": "smtp.example.com", "port": 2525, "useTls": False, "fromEmail": "desk@example.com"},
        )
        self.assertEqual(response.status_code, 200, response.get_json())

    def send(self, **overrides):
        payload = {
            "subject": "Session reminder",
            "body": "See you Thursday at 10am.",
            "caseId": self.case_id,
            "toEmails": ["sarah.smith@example.com"],
            "sendAsEmail": True,
        }
        payload.update(overrides)
        return self.client.post("/api/messages", json=payload)

    def test_internal_note(self) -> None:
        response = self.client.post(
            "/api/messages",
            json={"subject": "Intake notes", "body": "Fence placement is the main issue.", "caseId": self.case_id},
        )
        self.assertEqual(response.status_code, 201)
        message = response.get_json()["message"]
        self.assertEqual(message["direction"], "internal")
        self.assertIsNone(message["emailStatus"])
        self.assertEqual(message["toEmails"], [])

    def test_validation(self) -> None:
        self.assertEqual(self.client.post("/api/messages", json={"subject": "", "body": "x"}).status_code, 400)
        self.assertEqual(self.send(toEmails=[]).status_code, 400)
        self.assertEqual(self.send(caseId=999).status_code, 400)

    def test_list_filters(self) -> None:
        self.client.post("/api/messages", json={"subject": "Fence survey", "body": "Booked", "caseId": self.case_id})
        self.client.post("/api/messages", json={"subject": "Fees", "body": "Update Pierce rates"})

        by_case = self.client.get(f"/api/messages?caseId={self.case_id}").get_json()["messages"]
        self.assertEqual([m["subject"] for m in by_case], ["Fence survey"])
        found = self.client.get("/api/messages?q=pierce").get_json()["messages"]
        self.assertEqual([m["subject"] for m in found], ["Fees"])

    def test_email_is_sent_through_smtp(self) -> None:
        self.configure_smtp()
        with mock.patch("services.email.smtplib.SMTP") as smtp_cls:
            response = self.send()

        self.assertEqual(response.status_code, 201)
        message = response.get_json()["message"]
        self.assertEqual(message["direction"], "email_outbound")
        self.assertEqual(message["emailStatus"], "sent")
        self.assertEqual(message["fromEmail"], "desk@example.com")
        self.assertIsNotNone(message["sentAt"])

        smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=10.0)
        smtp = smtp_cls.return_value.__enter__.return_value
        smtp.starttls.assert_not_called()
        sent = smtp.send_message.call_args[0][0]
        self.assertEqual(sent["To"], "sarah.smith@example.com")
        self.assertEqual(sent["Subject"], "Session reminder")

    def test_smtp_failure_marks_message_failed(self) -> None:
        self.configure_smtp()
        with mock.patch("services.email.smtplib.SMTP", side_effect=OSError("connection refused")):
            message = self.send().get_json()["message"]
        self.assertEqual(message["emailStatus"], "failed")
        self.assertIsNone(message["sentAt"])

    def test_missing_smtp_configuration_marks_message_failed(self) -> None:
        message = self.send().get_json()["message"]
        self.assertEqual(message["emailStatus"], "failed")

    def test_get_and_delete(self) -> None:
        message_id = self.client.post(
            "/api/messages", json={"subject": "Note", "body": "Body"}
        ).get_json()["message"]["id"]
        self.assertEqual(self.client.get(f"/api/messages/{message_id}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/messages/{message_id}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/messages/{message_id}").status_code, 404)


if __name__ == "__main__":
    unittest.main()
