"""Service layer helpers for HarmonyDesk."""

from . import (  # noqa: F401
    security,
    db,
    settings,
    users,
    email,
    fields,
    reports,
    cases,
    clients,
    mediation_sessions,
    invoices,
    messages,
    profiles,
    demo,
    repository,
)

__all__ = [
    "security",
    "db",
    "settings",
    "users",
    "email",
    "fields",
    "reports",
    "cases",
    "clients",
    "mediation_sessions",
    "invoices",
    "messages",
    "profiles",
    "demo",
    "repository",
]
