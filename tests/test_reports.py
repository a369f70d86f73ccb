import os
import unittest
from io import BytesIO

from pdfminer.high_level import extract_pages, extract_text

from services.reports import (
    CSV_HEADER,
    JURISDICTIONS,
    STATUS_COUNTY_REPORT,
    STATUS_DRAFT,
    STATUS_SENT,
    InvoiceRecord,
    ReportUnavailableError,
    aggregate_for_county_report,
    export_csv,
    export_pdf,
    get_jurisdiction,
    register_pdf_font,
    render_report,
)

HEADER_LINE = '"Case Number","Matter","Bill To","Hours","Rate","Total"'
UNICODE_FONT = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"


def county_record(case_number, matter="Mediation", bill_to="County voucher", hours=1.0, rate=100.0):
    return InvoiceRecord(case_number, matter, bill_to, hours, rate, STATUS_COUNTY_REPORT)


def numbered_records(count):
    return [county_record(f"CASE-{i:03d}") for i in range(1, count + 1)]


def page_count(pdf: bytes) -> int:
    return len(list(extract_pages(BytesIO(pdf))))


def page_text(pdf: bytes, page: int) -> str:
    return extract_text(BytesIO(pdf), page_numbers=[page])


class AggregationTestCase(unittest.TestCase):
    def test_keeps_only_county_invoices_in_source_order(self) -> None:
        records = [
            county_record("B-2", hours=2, rate=150),
            InvoiceRecord("X-1", "Draft work", "Reed", 9, 300, STATUS_DRAFT),
            county_record("A-1", hours=4.5, rate=150),
            InvoiceRecord("X-2", "Sent work", "Lee", 1, 200, STATUS_SENT),
        ]
        group = aggregate_for_county_report(records)

        self.assertEqual([r.case_number for r in group.records], ["B-2", "A-1"])
        self.assertEqual(group.totals.case_count, 2)
        self.assertAlmostEqual(group.totals.total_hours, 6.5)
        self.assertAlmostEqual(group.totals.total_amount, 975.0)

    def test_empty_input_gives_zero_totals(self) -> None:
        group = aggregate_for_county_report([])
        self.assertEqual(group.records, ())
        self.assertEqual(group.totals.as_dict(), {"cases": 0, "hours": 0.0, "amount": 0.0})

    def test_status_match_is_exact(self) -> None:
        records = [InvoiceRecord("A", "m", "b", 1, 1, "for county report")]
        self.assertEqual(aggregate_for_county_report(records).totals.case_count, 0)


class CsvExportTestCase(unittest.TestCase):
    def test_empty_group_is_header_only(self) -> None:
        payload = export_csv(aggregate_for_county_report([]))
        self.assertEqual(payload, HEADER_LINE.encode("utf-8"))
        self.assertEqual(len(CSV_HEADER), 6)

    def test_quotes_every_cell_and_doubles_quotes(self) -> None:
        group = aggregate_for_county_report(
            [county_record("24-7-00987-9", 'Anderson "Andy", Rivera', "King County voucher", 4.5, 150)]
        )
        lines = export_csv(group).decode("utf-8").split("\n")

        self.assertEqual(lines[0], HEADER_LINE)
        self.assertEqual(
            lines[1],
            '"24-7-00987-9","Anderson ""Andy"", Rivera","King County voucher","4.50","150.00","675.00"',
        )

    def test_no_trailing_newline_and_one_line_per_record(self) -> None:
        payload = export_csv(aggregate_for_county_report(numbered_records(3)))
        self.assertFalse(payload.endswith(b"\n"))
        self.assertEqual(payload.count(b"\n"), 3)

    def test_keeps_non_ascii_as_utf8(self) -> None:
        group = aggregate_for_county_report([county_record("1", matter="Smith vs. Turner – Mediation")])
        self.assertIn("Smith vs. Turner – Mediation".encode("utf-8"), export_csv(group))

    def test_long_text_is_not_truncated(self) -> None:
        matter = "abcdefghij" * 5
        payload = export_csv(aggregate_for_county_report([county_record("1", matter=matter)]))
        self.assertIn(matter.encode("utf-8"), payload)

    def test_output_is_idempotent(self) -> None:
        group = aggregate_for_county_report(
            [county_record("A-1", matter='Lee "Sunny" Park'), county_record("B-2", hours=2.25)]
        )
        self.assertEqual(export_csv(group), export_csv(group))


class LongMatterTestCase(unittest.TestCase):
    def test_pdf_cuts_what_csv_keeps(self) -> None:
        matter = "abcdefghij" * 5
        group = aggregate_for_county_report([county_record("1", matter=matter)])

        text = page_text(export_pdf(group), 0)
        self.assertIn(matter[:37] + "...", text)
        self.assertNotIn(matter, text)

        rows = export_csv(group).decode("utf-8").split("\n")
        self.assertEqual(rows[1].split(",")[1], f'"{matter}"')


class PdfExportTestCase(unittest.TestCase):
    def test_renders_pdf_with_title_summary_and_headers(self) -> None:
        group = aggregate_for_county_report(
            [county_record("24-7-00987-9", hours=4.5, rate=150, bill_to="King County voucher")]
        )
        pdf = export_pdf(group)

        self.assertTrue(pdf.startswith(b"%PDF"))
        text = page_text(pdf, 0)
        self.assertIn("Pierce County District Court", text)
        self.assertIn("Month-End Report", text)
        self.assertIn("Total cases: 1", text)
        self.assertIn("Total hours: 4.50", text)
        self.assertIn("Total amount: $675.00", text)
        for label in ("Case #", "Matter", "Hours", "Total ($)", "Bill To"):
            self.assertIn(label, text)
        self.assertIn("24-7-00987-9", text)
        self.assertIn("675.00", text)

    def test_empty_group_still_renders_one_page(self) -> None:
        pdf = export_pdf(aggregate_for_county_report([]))
        self.assertEqual(page_count(pdf), 1)
        self.assertIn("Total cases: 0", page_text(pdf, 0))

    def test_first_page_holds_twenty_five_rows(self) -> None:
        self.assertEqual(page_count(export_pdf(aggregate_for_county_report(numbered_records(25)))), 1)

        pdf = export_pdf(aggregate_for_county_report(numbered_records(26)))
        self.assertEqual(page_count(pdf), 2)
        self.assertIn("CASE-025", page_text(pdf, 0))
        self.assertNotIn("CASE-026", page_text(pdf, 0))

        second = page_text(pdf, 1)
        self.assertIn("CASE-026", second)
        self.assertIn("Case #", second)
        self.assertIn("Bill To", second)
        self.assertNotIn("Total cases", second)

    def test_continuation_pages_hold_twenty_eight_rows(self) -> None:
        self.assertEqual(page_count(export_pdf(aggregate_for_county_report(numbered_records(53)))), 2)
        pdf = export_pdf(aggregate_for_county_report(numbered_records(54)))
        self.assertEqual(page_count(pdf), 3)
        self.assertIn("CASE-054", page_text(pdf, 2))

    def test_truncates_long_matter_and_bill_to(self) -> None:
        matter = "abcdefghij" * 5
        bill_to = "klmnopqrst" * 4
        pdf = export_pdf(aggregate_for_county_report([county_record("1", matter=matter, bill_to=bill_to)]))
        text = page_text(pdf, 0)

        self.assertIn(matter[:37] + "...", text)
        self.assertNotIn(matter, text)
        self.assertIn(bill_to[:27] + "...", text)

    def test_summary_can_be_overridden(self) -> None:
        group = aggregate_for_county_report(numbered_records(2))
        other = aggregate_for_county_report(numbered_records(7)).totals
        self.assertIn("Total cases: 7", page_text(export_pdf(group, totals=other), 0))

    def test_output_is_deterministic(self) -> None:
        group = aggregate_for_county_report(numbered_records(30))
        self.assertEqual(export_pdf(group), export_pdf(group))

    @unittest.skipUnless(os.path.exists(UNICODE_FONT), "DejaVu Sans is not installed")
    def test_embedded_font_keeps_names_outside_latin1(self) -> None:
        font = register_pdf_font(UNICODE_FONT)
        self.assertEqual(register_pdf_font(UNICODE_FONT), font)

        group = aggregate_for_county_report(
            [county_record("PL-1", matter="Łukasz Wiśniewski", bill_to="Ковальчук Олег")]
        )
        text = page_text(export_pdf(group, font_name=font), 0)
        self.assertIn("Łukasz Wiśniewski", text)
        self.assertIn("Ковальчук Олег", text)

        pdf = render_report(JURISDICTIONS["pierce-county"], list(group.records), font_name=font)[0]
        self.assertIn("Łukasz Wiśniewski", page_text(pdf, 0))


class JurisdictionTestCase(unittest.TestCase):
    def test_registry(self) -> None:
        self.assertEqual(
            sorted(JURISDICTIONS),
            ["king-county", "pierce-county", "snohomish-county"],
        )
        self.assertEqual(get_jurisdiction("King-County ").export_format, "csv")
        self.assertIsNone(get_jurisdiction("spokane-county"))
        self.assertEqual(
            JURISDICTIONS["pierce-county"].as_dict(),
            {
                "slug": "pierce-county",
                "name": "Pierce County District Court",
                "format": "One line per session",
                "nextDue": "15th of next month",
                "export": "pdf",
            },
        )

    def test_render_csv_for_king_county(self) -> None:
        payload, filename, mimetype = render_report(JURISDICTIONS["king-county"], numbered_records(2))
        self.assertEqual(filename, "king-county-report.csv")
        self.assertEqual(mimetype, "text/csv")
        self.assertTrue(payload.startswith(HEADER_LINE.encode("utf-8")))

    def test_render_pdf_for_pierce_county(self) -> None:
        payload, filename, mimetype = render_report(JURISDICTIONS["pierce-county"], numbered_records(2))
        self.assertEqual(filename, "pierce-county-report.pdf")
        self.assertEqual(mimetype, "application/pdf")
        self.assertIn("CASE-002", page_text(payload, 0))

    def test_snohomish_has_no_export(self) -> None:
        with self.assertRaises(ReportUnavailableError):
            render_report(JURISDICTIONS["snohomish-county"], numbered_records(1))


if __name__ == "__main__":
    unittest.main()
