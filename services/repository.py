"""Data access used by the HTTP layer.

The app picks one repository when it is constructed: ``LiveRepository`` reads
and writes the SQLite database, ``DemoRepository`` serves the canned demo
records and refuses every write with :class:`DemoModeError`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from services import cases, clients, demo, invoices, mediation_sessions, messages, profiles
from services.reports import InvoiceRecord

logger = logging.getLogger("harmonydesk.demo")


class DemoModeError(PermissionError):
    """Raised when a write is attempted against the demo repository."""


class LiveRepository:
    read_only = False

    # cases -------------------------------------------------------------
    def list_cases(self, owner_id: int, status: Optional[str] = None, search: str = "") -> list[dict]:
        return [cases.case_to_dict(r) for r in cases.list_cases(owner_id, status, search)]

    def get_case(self, owner_id: int, case_id: int) -> Optional[dict]:
        row = cases.get_case(owner_id, case_id)
        return cases.case_to_dict(row) if row else None

    def create_case(self, owner_id: int, payload: Mapping[str, Any]) -> dict:
        return cases.case_to_dict(cases.create_case(owner_id, payload))

    def update_case(self, owner_id: int, case_id: int, payload: Mapping[str, Any]) -> Optional[dict]:
        row = cases.update_case(owner_id, case_id, payload)
        return cases.case_to_dict(row) if row else None

    def delete_case(self, owner_id: int, case_id: int) -> bool:
        return cases.delete_case(owner_id, case_id)

    # clients -----------------------------------------------------------
    def list_clients(self, owner_id: int, search: str = "") -> list[dict]:
        return [clients.client_to_dict(r) for r in clients.list_clients(owner_id, search)]

    def get_client(self, owner_id: int, client_id: int) -> Optional[dict]:
        row = clients.get_client(owner_id, client_id)
        return clients.client_to_dict(row) if row else None

    def create_client(self, owner_id: int, payload: Mapping[str, Any]) -> dict:
        return clients.client_to_dict(clients.create_client(owner_id, payload))

    def update_client(self, owner_id: int, client_id: int, payload: Mapping[str, Any]) -> Optional[dict]:
        row = clients.update_client(owner_id, client_id, payload)
        return clients.client_to_dict(row) if row else None

    def delete_client(self, owner_id: int, client_id: int) -> bool:
        return clients.delete_client(owner_id, client_id)

    # mediation sessions ------------------------------------------------
    def list_sessions(self, owner_id: int, case_id: Optional[int] = None) -> list[dict]:
        return [
            mediation_sessions.session_to_dict(r)
            for r in mediation_sessions.list_sessions(owner_id, case_id)
        ]

    def get_session(self, owner_id: int, session_id: int) -> Optional[dict]:
        row = mediation_sessions.get_session(owner_id, session_id)
        return mediation_sessions.session_to_dict(row) if row else None

    def create_session(self, owner_id: int, payload: Mapping[str, Any]) -> dict:
        row = mediation_sessions.create_session(
            owner_id,
            payload,
            default_duration=profiles.default_session_duration(owner_id),
        )
        return mediation_sessions.session_to_dict(row)

    def update_session(self, owner_id: int, session_id: int, payload: Mapping[str, Any]) -> Optional[dict]:
        row = mediation_sessions.update_session(owner_id, session_id, payload)
        return mediation_sessions.session_to_dict(row) if row else None

    def delete_session(self, owner_id: int, session_id: int) -> bool:
        return mediation_sessions.delete_session(owner_id, session_id)

    # invoices ----------------------------------------------------------
    def list_invoices(self, owner_id: int, status: Optional[str] = None) -> list[dict]:
        return [invoices.invoice_to_dict(r) for r in invoices.list_invoices(owner_id, status)]

    def get_invoice(self, owner_id: int, invoice_id: int) -> Optional[dict]:
        row = invoices.get_invoice(owner_id, invoice_id)
        return invoices.invoice_to_dict(row) if row else None

    def invoice_records(self, owner_id: int) -> list[InvoiceRecord]:
        """Invoices in listing order, as report input."""
        return [InvoiceRecord.from_row(r) for r in invoices.list_invoices(owner_id)]

    def create_invoice(self, owner_id: int, payload: Mapping[str, Any]) -> dict:
        row = invoices.create_invoice(
            owner_id,
            payload,
            default_rate=profiles.default_hourly_rate(owner_id),
        )
        return invoices.invoice_to_dict(row)

    def update_invoice(self, owner_id: int, invoice_id: int, payload: Mapping[str, Any]) -> Optional[dict]:
        row = invoices.update_invoice(owner_id, invoice_id, payload)
        return invoices.invoice_to_dict(row) if row else None

    def delete_invoice(self, owner_id: int, invoice_id: int) -> bool:
        return invoices.delete_invoice(owner_id, invoice_id)

    # messages ----------------------------------------------------------
    def list_messages(self, owner_id: int, case_id: Optional[int] = None, search: str = "") -> list[dict]:
        return [messages.message_to_dict(r) for r in messages.list_messages(owner_id, case_id, search)]

    def get_message(self, owner_id: int, message_id: int) -> Optional[dict]:
        row = messages.get_message(owner_id, message_id)
        return messages.message_to_dict(row) if row else None

    def create_message(
        self,
        owner_id: int,
        subject: str,
        body: str,
        case_id: Optional[int] = None,
        to_emails: Iterable[str] = (),
        send_as_email: bool = False,
    ) -> dict:
        if case_id is not None and cases.get_case(owner_id, case_id) is None:
            raise ValueError("Case not found for this message")
        message_id = messages.create_message(
            owner_id, subject, body, case_id, to_emails, send_as_email
        )
        return self.get_message(owner_id, message_id)

    def mark_email_status(self, message_id: int, status: str, from_email: Optional[str] = None) -> None:
        messages.mark_email_status(message_id, status, from_email)

    def delete_message(self, owner_id: int, message_id: int) -> bool:
        return messages.delete_message(owner_id, message_id)

    # profile -----------------------------------------------------------
    def get_profile(self, user_id: int) -> dict:
        return profiles.profile_to_dict(profiles.get_profile(user_id))

    def update_profile(self, user_id: int, payload: Mapping[str, Any]) -> dict:
        return profiles.profile_to_dict(profiles.update_profile(user_id, payload))


def _find(records: Iterable[Mapping[str, Any]], record_id: int) -> Optional[Mapping[str, Any]]:
    for record in records:
        if record["id"] == record_id:
            return record
    return None


def _contains(needle: str, *values: Optional[str]) -> bool:
    needle = (needle or "").strip().lower()
    if not needle:
        return True
    return any(needle in (value or "").lower() for value in values)


class DemoRepository(LiveRepository):
    """Read-only view over :mod:`services.demo`; ignores the owner id."""

    read_only = True

    def _blocked(self, *args: Any, **kwargs: Any) -> Any:
        logger.info("Rejected write in demo mode")
        raise DemoModeError("Demo mode is read-only.")

    create_case = update_case = delete_case = _blocked
    create_client = update_client = delete_client = _blocked
    create_session = update_session = delete_session = _blocked
    create_invoice = update_invoice = delete_invoice = _blocked
    create_message = mark_email_status = delete_message = _blocked
    update_profile = _blocked

    def list_cases(self, owner_id: int, status: Optional[str] = None, search: str = "") -> list[dict]:
        return [
            cases.case_to_dict(c)
            for c in demo.DEMO_CASES
            if (not status or c["status"] == status)
            and _contains(search, c["case_number"], c["matter"], c["parties"])
        ]

    def get_case(self, owner_id: int, case_id: int) -> Optional[dict]:
        row = _find(demo.DEMO_CASES, case_id)
        return cases.case_to_dict(row) if row else None

    def list_clients(self, owner_id: int, search: str = "") -> list[dict]:
        return [
            clients.client_to_dict(c)
            for c in demo.DEMO_CLIENTS
            if _contains(search, c["name"], c["email"])
        ]

    def get_client(self, owner_id: int, client_id: int) -> Optional[dict]:
        row = _find(demo.DEMO_CLIENTS, client_id)
        return clients.client_to_dict(row) if row else None

    def list_sessions(self, owner_id: int, case_id: Optional[int] = None) -> list[dict]:
        return [
            mediation_sessions.session_to_dict(s)
            for s in demo.DEMO_SESSIONS
            if case_id is None or s["case_id"] == case_id
        ]

    def get_session(self, owner_id: int, session_id: int) -> Optional[dict]:
        row = _find(demo.DEMO_SESSIONS, session_id)
        return mediation_sessions.session_to_dict(row) if row else None

    def list_invoices(self, owner_id: int, status: Optional[str] = None) -> list[dict]:
        return [
            invoices.invoice_to_dict(i)
            for i in demo.DEMO_INVOICES
            if not status or i["status"] == status
        ]

    def get_invoice(self, owner_id: int, invoice_id: int) -> Optional[dict]:
        row = _find(demo.DEMO_INVOICES, invoice_id)
        return invoices.invoice_to_dict(row) if row else None

    def invoice_records(self, owner_id: int) -> list[InvoiceRecord]:
        return [InvoiceRecord.from_row(i) for i in demo.DEMO_INVOICES]

    def list_messages(self, owner_id: int, case_id: Optional[int] = None, search: str = "") -> list[dict]:
        return [
            messages.message_to_dict(m)
            for m in demo.DEMO_MESSAGES
            if (case_id is None or m["case_id"] == case_id)
            and _contains(search, f"{m['subject']} {m['body']}")
        ]

    def get_message(self, owner_id: int, message_id: int) -> Optional[dict]:
        row = _find(demo.DEMO_MESSAGES, message_id)
        return messages.message_to_dict(row) if row else None

    def get_profile(self, user_id: int) -> dict:
        return profiles.profile_to_dict(demo.DEMO_PROFILE)


def build_repository(demo_mode: bool) -> LiveRepository:
    return DemoRepository() if demo_mode else LiveRepository()
