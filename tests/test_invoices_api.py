import csv
import io
import unittest

from tests.base import ApiTestCase


class InvoiceApiTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.setup_admin()

    def create_invoice(self, **overrides):
        payload = {
            "caseNumber": "24-7-00987-9",
            "matter": "Anderson / Rivera – DV Protection Order",
            "contact": "King County voucher",
            "hours": 4.5,
            "rate": 150,
        }
        payload.update(overrides)
        return self.client.post("/api/invoices", json=payload)

    def test_create_starts_as_draft(self) -> None:
        response = self.create_invoice()
        self.assertEqual(response.status_code, 201)
        invoice = response.get_json()["invoice"]
        self.assertEqual(invoice["status"], "Draft")
        self.assertEqual(invoice["due"], "Draft – set due date")
        self.assertEqual(invoice["total"], 675.0)

    def test_missing_fields_are_rejected(self) -> None:
        response = self.create_invoice(contact="  ")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["msg"], "Missing required fields")

    def test_over_long_matter_is_rejected(self) -> None:
        response = self.create_invoice(matter="x" * 301)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["msg"], "matter must be at most 300 characters")
        self.assertEqual(self.client.get("/api/invoices").get_json()["invoices"], [])

    def test_long_matter_reaches_csv_verbatim(self) -> None:
        matter = ("Anderson / Rivera " * 17)[:300]
        invoice_id = self.create_invoice(matter=matter).get_json()["invoice"]["id"]
        self.client.patch(f"/api/invoices/{invoice_id}", json={"status": "For county report"})

        rows = list(csv.reader(io.StringIO(
            self.client.get("/api/reports/king-county/export").get_data(as_text=True)
        )))
        self.assertEqual(rows[1][1], matter)

    def test_body_must_be_a_json_object(self) -> None:
        response = self.client.post("/api/invoices", json=[1])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.get_json(),
            {"ok": False, "msg": "Request body must be a JSON object."},
        )

    def test_unparseable_numbers_become_zero(self) -> None:
        invoice = self.create_invoice(hours="lots", rate="").get_json()["invoice"]
        self.assertEqual(invoice["hours"], 0.0)
        self.assertEqual(invoice["rate"], 0.0)

    def test_negative_or_infinite_numbers_are_rejected(self) -> None:
        self.assertEqual(self.create_invoice(hours=-1).status_code, 400)
        self.assertEqual(self.create_invoice(rate="inf").status_code, 400)

    def test_missing_rate_uses_profile_default(self) -> None:
        self.client.patch("/api/user-settings", json={"defaultHourlyRate": 175})
        payload = {"caseNumber": "1", "matter": "Matter", "contact": "Reed", "hours": 2}
        invoice = self.client.post("/api/invoices", json=payload).get_json()["invoice"]
        self.assertEqual(invoice["rate"], 175.0)
        self.assertEqual(invoice["total"], 350.0)

    def test_status_change_resets_due_text(self) -> None:
        invoice_id = self.create_invoice().get_json()["invoice"]["id"]

        sent = self.client.patch(f"/api/invoices/{invoice_id}", json={"status": "Sent"}).get_json()["invoice"]
        self.assertEqual(sent["due"], "Sent – awaiting payment")

        explicit = self.client.patch(
            f"/api/invoices/{invoice_id}",
            json={"status": "For county report", "due": "Voucher filed 3/1"},
        ).get_json()["invoice"]
        self.assertEqual(explicit["status"], "For county report")
        self.assertEqual(explicit["due"], "Voucher filed 3/1")

    def test_unknown_status_and_missing_invoice(self) -> None:
        invoice_id = self.create_invoice().get_json()["invoice"]["id"]
        self.assertEqual(
            self.client.patch(f"/api/invoices/{invoice_id}", json={"status": "Paid"}).status_code,
            400,
        )
        self.assertEqual(self.client.patch("/api/invoices/999", json={"status": "Sent"}).status_code, 404)
        self.assertEqual(self.client.get("/api/invoices/999").status_code, 404)
        self.assertEqual(self.client.delete("/api/invoices/999").status_code, 404)

    def test_delete(self) -> None:
        invoice_id = self.create_invoice().get_json()["invoice"]["id"]
        self.assertEqual(self.client.delete(f"/api/invoices/{invoice_id}").status_code, 200)
        self.assertEqual(self.client.get("/api/invoices").get_json()["invoices"], [])

    def test_summary_reports_drafts_and_county_totals(self) -> None:
        self.create_invoice(hours=3, rate=250)
        county_id = self.create_invoice(hours=4.5, rate=150).get_json()["invoice"]["id"]
        self.client.patch(f"/api/invoices/{county_id}", json={"status": "For county report"})

        summary = self.client.get("/api/invoices/summary").get_json()
        self.assertEqual(summary["draftTotal"], 750.0)
        self.assertEqual(summary["county"], {"cases": 1, "hours": 4.5, "amount": 675.0})

        drafts = self.client.get("/api/invoices?status=Draft").get_json()["invoices"]
        self.assertEqual(len(drafts), 1)

    def test_invoices_are_private_to_their_owner(self) -> None:
        invoice_id = self.create_invoice().get_json()["invoice"]["id"]
        self.add_user("second@example.com")
        self.client.post("/logout")
        self.login("second@example.com", "Another!234")

        self.assertEqual(self.client.get(f"/api/invoices/{invoice_id}").status_code, 404)
        self.assertEqual(self.client.get("/api/invoices").get_json()["invoices"], [])


class CountyReportApiTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.setup_admin()
        for case_number, status in (("A-1", "For county report"), ("B-2", "Sent"), ("C-3", "For county report")):
            invoice_id = self.client.post(
                "/api/invoices",
                json={"caseNumber": case_number, "matter": "Mediation", "contact": "Court", "hours": 2, "rate": 100},
            ).get_json()["invoice"]["id"]
            self.client.patch(f"/api/invoices/{invoice_id}", json={"status": status})

    def test_lists_jurisdictions(self) -> None:
        items = self.client.get("/api/reports/jurisdictions").get_json()["jurisdictions"]
        self.assertEqual({j["slug"]: j["export"] for j in items}, {
            "king-county": "csv",
            "pierce-county": "pdf",
            "snohomish-county": None,
        })

    def test_preview(self) -> None:
        preview = self.client.get("/api/reports/county").get_json()
        self.assertEqual(sorted(r["caseNumber"] for r in preview["records"]), ["A-1", "C-3"])
        self.assertEqual(preview["totals"], {"cases": 2, "hours": 4.0, "amount": 400.0})

    def test_king_county_csv_download(self) -> None:
        response = self.client.get("/api/reports/king-county/export")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, "text/csv")
        self.assertIn("king-county-report.csv", response.headers["Content-Disposition"])

        rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
        self.assertEqual(rows[0], ["Case Number", "Matter", "Bill To", "Hours", "Rate", "Total"])
        self.assertEqual(sorted(r[0] for r in rows[1:]), ["A-1", "C-3"])
        self.assertEqual(rows[1][3:], ["2.00", "100.00", "200.00"])

    def test_pierce_county_pdf_download(self) -> None:
        response = self.client.get("/api/reports/pierce-county/export")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, "application/pdf")
        self.assertIn("pierce-county-report.pdf", response.headers["Content-Disposition"])
        self.assertTrue(response.data.startswith(b"%PDF"))

    def test_unavailable_and_unknown_jurisdictions(self) -> None:
        response = self.client.get("/api/reports/snohomish-county/export")
        self.assertEqual(response.status_code, 404)
        self.assertIn("not available yet", response.get_json()["msg"])
        self.assertEqual(self.client.get("/api/reports/spokane-county/export").status_code, 404)


if __name__ == "__main__":
    unittest.main()
