"""Canned records served when HarmonyDesk runs as a public demo."""

from __future__ import annotations

from services.reports import STATUS_COUNTY_REPORT, STATUS_DRAFT, STATUS_SENT

DEMO_CASES = [
    {
        "id": 1,
        "case_number": "MC-2024-001",
        "matter": "Smith vs. Jones Property Dispute",
        "parties": "Sarah Smith, Michael Jones",
        "county": "King County",
        "status": "Open",
        "next_session_date": "2026-02-15T14:00:00Z",
        "notes": "Initial session completed. Parties willing to negotiate boundary fence placement.",
    },
    {
        "id": 2,
        "case_number": "MC-2024-002",
        "matter": "Anderson Family Estate Division",
        "parties": "Emily Anderson, Robert Anderson, Lisa Anderson-Chen",
        "county": "Pierce County",
        "status": "Upcoming",
        "next_session_date": "2026-02-12T10:00:00Z",
        "notes": "Family mediation regarding inheritance distribution.",
    },
    {
        "id": 3,
        "case_number": "MC-2024-003",
        "matter": "Chen & Partners LLC Business Dissolution",
        "parties": "David Chen, Patricia Wong",
        "county": "King County",
        "status": "Closed",
        "next_session_date": None,
        "notes": "Agreement signed and filed.",
    },
    {
        "id": 4,
        "case_number": "MC-2024-004",
        "matter": "Martinez Landlord-Tenant Dispute",
        "parties": "Carlos Martinez (Landlord), Jennifer Thompson (Tenant)",
        "county": "Snohomish County",
        "status": "Open",
        "next_session_date": "2026-02-20T15:30:00Z",
        "notes": "Dispute over security deposit and property damage.",
    },
]

DEMO_CLIENTS = [
    {
        "id": 1,
        "name": "Sarah Smith",
        "email": "sarah.smith@example.com",
        "phone": "(206) 555-0101",
        "notes": "Prefers morning sessions.",
    },
    {
        "id": 2,
        "name": "Michael Jones",
        "email": "m.jones@example.com",
        "phone": "(206) 555-0102",
        "notes": None,
    },
    {
        "id": 3,
        "name": "Emily Anderson",
        "email": "emily.anderson@example.com",
        "phone": "(253) 555-0103",
        "notes": "Primary contact for siblings.",
    },
    {
        "id": 4,
        "name": "Robert Anderson",
        "email": None,
        "phone": "(253) 555-0104",
        "notes": "Prefers phone communication.",
    },
]

DEMO_SESSIONS = [
    {
        "id": 1,
        "case_id": 1,
        "date": "2026-02-15T14:00:00Z",
        "duration_hours": 2,
        "notes": "Discuss fence options and cost sharing after survey results.",
        "completed": 0,
    },
    {
        "id": 2,
        "case_id": 2,
        "date": "2026-02-12T10:00:00Z",
        "duration_hours": 2.5,
        "notes": "Review cabin appraisal and discuss buyout offer.",
        "completed": 0,
    },
    {
        "id": 3,
        "case_id": 4,
        "date": "2026-02-20T15:30:00Z",
        "duration_hours": 1.5,
        "notes": "Review damage photos.",
        "completed": 0,
    },
]

DEMO_INVOICES = [
    {
        "id": 1,
        "case_number": "23-2-00123-1",
        "matter": "Smith vs. Turner – Mediation",
        "contact": "Attorney Reed",
        "hours": 3,
        "rate": 250,
        "status": STATUS_DRAFT,
        "due": "Draft – set due date",
    },
    {
        "id": 2,
        "case_number": "24-1-00456-5",
        "matter": "Johnson / Lee – Small Claims",
        "contact": "Defendant pro se",
        "hours": 2,
        "rate": 200,
        "status": STATUS_SENT,
        "due": "Net 30 – 12/15/2025",
    },
    {
        "id": 3,
        "case_number": "24-7-00987-9",
        "matter": "Anderson / Rivera – DV Protection Order",
        "contact": "King County voucher",
        "hours": 4.5,
        "rate": 150,
        "status": STATUS_COUNTY_REPORT,
        "due": "Included in month-end county report",
    },
]

DEMO_MESSAGES = [
    {
        "id": 1,
        "case_id": 1,
        "subject": "Initial intake notes - Smith/Jones",
        "body": "Spoke with both parties separately. Main issue is fence placement and cost sharing.",
        "created_at": "2026-01-28T09:30:00Z",
        "direction": "internal",
        "to_emails": None,
        "from_email": None,
        "email_status": None,
        "sent_at": None,
    },
    {
        "id": 2,
        "case_id": None,
        "subject": "Reminder: Update court reporting fees",
        "body": "Review court reporting rates for Pierce County.",
        "created_at": "2026-02-03T08:00:00Z",
        "direction": "internal",
        "to_emails": None,
        "from_email": None,
        "email_status": None,
        "sent_at": None,
    },
]

DEMO_PROFILE = {
    "full_name": "Demo Mediator",
    "phone": "(206) 555-0100",
    "business_name": "HarmonyDesk Demo Mediation Services",
    "business_address": "123 Demo Street\nSeattle, WA 98101",
    "default_hourly_rate": 250,
    "default_county": "King County",
    "default_session_duration": 2,
    "timezone": "America/Los_Angeles",
}
