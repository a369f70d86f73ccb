"""Per-mediator profile settings (business details and billing defaults)."""

from __future__ import annotations

from typing import Any, Mapping

from services.db import get_app_db
from services.fields import clean_optional, parse_number, require_non_negative

_TEXT_FIELDS = {
    "fullName": "full_name",
    "phone": "phone",
    "businessName": "business_name",
    "businessAddress": "business_address",
    "defaultCounty": "default_county",
    "timezone": "timezone",
}
_NUMBER_FIELDS = {
    "defaultHourlyRate": "default_hourly_rate",
    "defaultSessionDuration": "default_session_duration",
}


def _empty_profile(user_id: int) -> dict[str, Any]:
    profile: dict[str, Any] = {"user_id": user_id}
    for column in (*_TEXT_FIELDS.values(), *_NUMBER_FIELDS.values()):
        profile[column] = None
    return profile


def get_profile(user_id: int) -> dict[str, Any]:
    row = get_app_db().execute(
        "SELECT * FROM user_profiles WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return dict(row) if row else _empty_profile(user_id)


def profile_to_dict(profile: Mapping[str, Any]) -> dict[str, Any]:
    out = {key: profile.get(column) for key, column in _TEXT_FIELDS.items()}
    out.update({key: profile.get(column) for key, column in _NUMBER_FIELDS.items()})
    return out


def update_profile(user_id: int, payload: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, column in _TEXT_FIELDS.items():
        if key in payload:
            values[column] = clean_optional(payload[key], 300, key)
    for key, column in _NUMBER_FIELDS.items():
        if key in payload:
            if payload[key] in (None, ""):
                values[column] = None
            else:
                values[column] = require_non_negative(key, parse_number(payload[key]))
    if not values:
        raise ValueError("Nothing to update")

    columns = ["user_id", *values.keys()]
    updates = ", ".join(f"{column} = excluded.{column}" for column in values)
    conn = get_app_db()
    conn.execute(
        f"""
        INSERT INTO user_profiles({', '.join(columns)})
        VALUES({', '.join('?' for _ in columns)})
        ON CONFLICT(user_id) DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP
        """,
        [user_id, *values.values()],
    )
    conn.commit()
    return get_profile(user_id)


def default_hourly_rate(user_id: int) -> float:
    return float(get_profile(user_id).get("default_hourly_rate") or 0)


def default_session_duration(user_id: int) -> float:
    return float(get_profile(user_id).get("default_session_duration") or 1)
