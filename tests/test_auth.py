import unittest
from datetime import datetime, timedelta, timezone

from app import SESSION_ACTIVITY_KEY
from tests.base import ADMIN_EMAIL, ADMIN_PASSWORD, ApiTestCase


class AuthTestCase(ApiTestCase):
    def test_setup_creates_single_admin(self) -> None:
        user = self.setup_admin()
        self.assertEqual(user["email"], ADMIN_EMAIL)
        self.assertEqual(user["role"], "admin")

        again = self.client.post("/api/setup", json={"email": "x@example.com", "password": "Password!23"})
        self.assertEqual(again.status_code, 409)
        self.assertFalse(again.get_json()["ok"])

    def test_setup_rejects_short_password(self) -> None:
        response = self.client.post("/api/setup", json={"email": ADMIN_EMAIL, "password": "short"})
        self.assertEqual(response.status_code, 400)

    def test_api_requires_login(self) -> None:
        for path in ("/api/me", "/api/cases", "/api/invoices", "/api/reports/jurisdictions"):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 401, path)
            self.assertEqual(response.get_json(), {"ok": False, "msg": "Authentication required."})

    def test_login_and_logout(self) -> None:
        self.setup_admin()
        self.client.post("/logout")
        self.assertEqual(self.client.get("/api/me").status_code, 401)

        bad = self.login(ADMIN_EMAIL, "wrong-password")
        self.assertEqual(bad.status_code, 401)

        good = self.login(ADMIN_EMAIL.upper(), ADMIN_PASSWORD)
        self.assertEqual(good.status_code, 200)
        self.assertIsNotNone(good.get_json()["user"]["lastLoginAt"])

        me = self.client.get("/api/me").get_json()
        self.assertEqual(me["user"]["email"], ADMIN_EMAIL)
        self.assertFalse(me["demo"])
        self.assertIn("defaultHourlyRate", me["profile"])

    def test_admin_manages_users(self) -> None:
        self.setup_admin()
        user = self.add_user("second@example.com")
        self.assertEqual(user["role"], "user")

        duplicate = self.client.post(
            "/api/admin/users",
            json={"email": "Second@example.com", "password": "Another!234"},
        )
        self.assertEqual(duplicate.status_code, 409)

        bad_role = self.client.post(
            "/api/admin/users",
            json={"email": "third@example.com", "password": "Another!234", "role": "owner"},
        )
        self.assertEqual(bad_role.status_code, 400)

        listing = self.client.get("/api/admin/users").get_json()["users"]
        self.assertEqual(len(listing), 2)

    def test_non_admin_is_forbidden_from_admin_endpoints(self) -> None:
        self.setup_admin()
        self.add_user("second@example.com")
        self.client.post("/logout")
        self.login("second@example.com", "Another!234")

        response = self.client.get("/api/admin/users")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["msg"], "Administrator access required.")

    def test_idle_session_expires(self) -> None:
        self.setup_admin()
        stale = datetime.now(timezone.utc) - timedelta(minutes=self.app.config["SESSION_TIMEOUT_MINUTES"] + 1)
        with self.client.session_transaction() as sess:
            sess[SESSION_ACTIVITY_KEY] = stale.isoformat()

        response = self.client.get("/api/me")
        self.assertEqual(response.status_code, 401)
        self.assertIn("Session expired", response.get_json()["msg"])
        self.assertEqual(self.client.get("/api/me").get_json()["msg"], "Authentication required.")

    def test_login_works_with_a_stale_session(self) -> None:
        self.setup_admin()
        stale = datetime.now(timezone.utc) - timedelta(minutes=self.app.config["SESSION_TIMEOUT_MINUTES"] + 1)
        with self.client.session_transaction() as sess:
            sess[SESSION_ACTIVITY_KEY] = stale.isoformat()

        response = self.login(ADMIN_EMAIL, ADMIN_PASSWORD)
        self.assertEqual(response.status_code, 200, response.get_json())
        self.assertEqual(self.client.get("/api/me").status_code, 200)

        with self.client.session_transaction() as sess:
            sess[SESSION_ACTIVITY_KEY] = stale.isoformat()
        self.assertEqual(self.client.post("/logout").get_json(), {"ok": True})


if __name__ == "__main__":
    unittest.main()
