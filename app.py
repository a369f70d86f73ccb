from __future__ import annotations

import logging
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from io import BytesIO
from typing import Any, Dict, Optional

from flask import (
    Blueprint, Flask, current_app, g, jsonify, request, send_file, session
)

import harmonydesk_config as config
from services.db import close_app_db, get_app_db
from services.email import (
    EmailConfigError, save_smtp_settings, send_email_async, sender_address
)
from services.fields import as_bool, normalize_ws
from services.invoices import draft_total
from services.messages import EMAIL_FAILED, EMAIL_SENT
from services.reports import (
    DEFAULT_PDF_FONT,
    JURISDICTIONS,
    ReportUnavailableError,
    aggregate_for_county_report,
    get_jurisdiction,
    register_pdf_font,
    render_report,
)
from services.repository import DemoModeError, LiveRepository, build_repository
from services.security import needs_rehash
from services.users import (
    UserExistsError,
    authenticate_user,
    count_users,
    create_user,
    get_user_by_id,
    list_users,
    mark_user_login,
    set_user_password,
    user_to_dict,
)

SESSION_ACTIVITY_KEY = "last_activity"
# Endpoints that must work with a stale session so the user can sign in again.
SESSION_EXEMPT_ENDPOINTS = {"api.login", "api.logout"}
REPOSITORY_EXTENSION = "harmonydesk.repository"
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class RequestContext:
    """Identity of the signed-in user, resolved once per request."""

    user_id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


api = Blueprint("api", __name__)


def repository() -> LiveRepository:
    return current_app.extensions[REPOSITORY_EXTENSION]


def _json_body() -> Dict[str, Any]:
    if not request.is_json:
        return request.form.to_dict()
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object.")
    return data


def _error(message: str, status: int = 400):
    return jsonify({"ok": False, "msg": message}), status


def _not_found(kind: str):
    return _error(f"{kind} not found.", 404)


def _int_arg(name: str) -> Optional[int]:
    return request.args.get(name, type=int)


# ---- Sessions & auth ----------------------------------------------------
def login_user_session(user) -> None:
    session.clear()
    session.permanent = True
    session['user_id'] = user['id']
    session[SESSION_ACTIVITY_KEY] = datetime.now(timezone.utc).isoformat()


def logout_user_session() -> None:
    session.clear()


def require_login_api(handler):
    """Reject anonymous callers; pass the :class:`RequestContext` as first argument."""

    @wraps(handler)
    def wrapper(*args, **kwargs):
        ctx = g.get('request_context')
        if ctx is None:
            return _error("Authentication required.", 401)
        return handler(ctx, *args, **kwargs)

    return wrapper


def require_admin_api(handler):
    @wraps(handler)
    def wrapper(*args, **kwargs):
        ctx = g.get('request_context')
        if ctx is None:
            return _error("Authentication required.", 401)
        if not ctx.is_admin:
            return _error("Administrator access required.", 403)
        return handler(ctx, *args, **kwargs)

    return wrapper


@api.before_app_request
def _enforce_session_timeout():
    if session.get('user_id') is None or request.endpoint in SESSION_EXEMPT_ENDPOINTS:
        return None

    timeout = timedelta(minutes=current_app.config["SESSION_TIMEOUT_MINUTES"])
    now = datetime.now(timezone.utc)
    last_activity = None
    raw_last_activity = session.get(SESSION_ACTIVITY_KEY)
    if raw_last_activity:
        with suppress(ValueError, TypeError):
            last_activity = datetime.fromisoformat(raw_last_activity)

    if last_activity and now - last_activity > timeout:
        logout_user_session()
        return _error("Session expired. Please log in again.", 401)

    session.permanent = True
    session[SESSION_ACTIVITY_KEY] = now.isoformat()
    return None


@api.before_app_request
def _load_request_context() -> None:
    g.request_context = None
    user_id = session.get('user_id')
    if user_id is None:
        return
    user = get_user_by_id(user_id)
    if user and user['is_active']:
        g.request_context = RequestContext(
            user_id=int(user['id']),
            email=user['email'],
            role=user['role'],
        )
    else:
        session.clear()


@api.get("/ping")
def ping():
    return jsonify({"ok": True})


@api.post("/api/setup")
def setup():
    if count_users() > 0:
        return _error("Setup has already been completed.", 409)

    data = _json_body()
    email = normalize_ws(data.get("email")).lower()
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        return _error(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    user_id = create_user(email, password, role="admin")
    user = get_user_by_id(user_id)
    login_user_session(user)
    mark_user_login(user_id)
    current_app.logger.info("Initial administrator %s created", user['email'])
    return jsonify({"ok": True, "user": user_to_dict(user)}), 201


@api.post("/login")
def login():
    data = _json_body()
    email = normalize_ws(data.get("email") or data.get("username")).lower()
    password = data.get("password") or ""

    user = authenticate_user(email, password)
    if not user:
        current_app.logger.info("Failed login for %s", email or "<blank>")
        return _error("Invalid email or password.", 401)

    if needs_rehash(user['password_hash']):
        set_user_password(user['id'], password)
    login_user_session(user)
    mark_user_login(user['id'])
    return jsonify({"ok": True, "user": user_to_dict(get_user_by_id(user['id']))})


@api.post("/logout")
def logout():
    logout_user_session()
    return jsonify({"ok": True})


@api.get("/api/me")
@require_login_api
def api_me(ctx: RequestContext):
    repo = repository()
    return jsonify({
        "ok": True,
        "user": user_to_dict(get_user_by_id(ctx.user_id)),
        "profile": repo.get_profile(ctx.user_id),
        "demo": repo.read_only,
    })


@api.get("/api/admin/users")
@require_admin_api
def api_admin_users(ctx: RequestContext):
    return jsonify({"ok": True, "users": [user_to_dict(u) for u in list_users()]})


@api.post("/api/admin/users")
@require_admin_api
def api_admin_create_user(ctx: RequestContext):
    data = _json_body()
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        return _error(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    role = (data.get("role") or "user").strip().lower()
    user_id = create_user(data.get("email") or "", password, role=role)
    current_app.logger.info("%s added user #%s", ctx.email, user_id)
    return jsonify({"ok": True, "user": user_to_dict(get_user_by_id(user_id))}), 201


@api.post("/api/admin/email-settings")
@require_admin_api
def api_admin_email_settings(ctx: RequestContext):
    data = _json_body()
    save_smtp_settings(
        host=data.get("host") or "",
        port=data.get("port") or 587,
        username=data.get("username"),
        password=data.get("password"),
        use_tls=as_bool(data.get("useTls", True)),
        from_email=data.get("fromEmail") or "",
    )
    current_app.logger.info("SMTP settings updated by %s", ctx.email)
    return jsonify({"ok": True})


# ---- Cases --------------------------------------------------------------
@api.get("/api/cases")
@require_login_api
def api_cases(ctx: RequestContext):
    items = repository().list_cases(
        ctx.user_id,
        status=request.args.get("status") or None,
        search=request.args.get("q", ""),
    )
    return jsonify({"ok": True, "cases": items})


@api.post("/api/cases")
@require_login_api
def api_create_case(ctx: RequestContext):
    item = repository().create_case(ctx.user_id, _json_body())
    return jsonify({"ok": True, "case": item}), 201


@api.get("/api/cases/<int:case_id>")
@require_login_api
def api_case(ctx: RequestContext, case_id: int):
    item = repository().get_case(ctx.user_id, case_id)
    if item is None:
        return _not_found("Case")
    return jsonify({"ok": True, "case": item})


@api.patch("/api/cases/<int:case_id>")
@require_login_api
def api_update_case(ctx: RequestContext, case_id: int):
    item = repository().update_case(ctx.user_id, case_id, _json_body())
    if item is None:
        return _not_found("Case")
    return jsonify({"ok": True, "case": item})


@api.delete("/api/cases/<int:case_id>")
@require_login_api
def api_delete_case(ctx: RequestContext, case_id: int):
    if not repository().delete_case(ctx.user_id, case_id):
        return _not_found("Case")
    return jsonify({"ok": True})


# ---- Clients ------------------------------------------------------------
@api.get("/api/clients")
@require_login_api
def api_clients(ctx: RequestContext):
    items = repository().list_clients(ctx.user_id, search=request.args.get("q", ""))
    return jsonify({"ok": True, "clients": items})


@api.post("/api/clients")
@require_login_api
def api_create_client(ctx: RequestContext):
    item = repository().create_client(ctx.user_id, _json_body())
    return jsonify({"ok": True, "client": item}), 201


@api.get("/api/clients/<int:client_id>")
@require_login_api
def api_client(ctx: RequestContext, client_id: int):
    item = repository().get_client(ctx.user_id, client_id)
    if item is None:
        return _not_found("Client")
    return jsonify({"ok": True, "client": item})


@api.patch("/api/clients/<int:client_id>")
@require_login_api
def api_update_client(ctx: RequestContext, client_id: int):
    item = repository().update_client(ctx.user_id, client_id, _json_body())
    if item is None:
        return _not_found("Client")
    return jsonify({"ok": True, "client": item})


@api.delete("/api/clients/<int:client_id>")
@require_login_api
def api_delete_client(ctx: RequestContext, client_id: int):
    if not repository().delete_client(ctx.user_id, client_id):
        return _not_found("Client")
    return jsonify({"ok": True})


# ---- Mediation sessions -------------------------------------------------
@api.get("/api/sessions")
@require_login_api
def api_sessions(ctx: RequestContext):
    items = repository().list_sessions(ctx.user_id, case_id=_int_arg("caseId"))
    return jsonify({"ok": True, "sessions": items})


@api.post("/api/sessions")
@require_login_api
def api_create_session(ctx: RequestContext):
    item = repository().create_session(ctx.user_id, _json_body())
    return jsonify({"ok": True, "session": item}), 201


@api.get("/api/sessions/<int:session_id>")
@require_login_api
def api_session(ctx: RequestContext, session_id: int):
    item = repository().get_session(ctx.user_id, session_id)
    if item is None:
        return _not_found("Session")
    return jsonify({"ok": True, "session": item})


@api.patch("/api/sessions/<int:session_id>")
@require_login_api
def api_update_session(ctx: RequestContext, session_id: int):
    item = repository().update_session(ctx.user_id, session_id, _json_body())
    if item is None:
        return _not_found("Session")
    return jsonify({"ok": True, "session": item})


@api.delete("/api/sessions/<int:session_id>")
@require_login_api
def api_delete_session(ctx: RequestContext, session_id: int):
    if not repository().delete_session(ctx.user_id, session_id):
        return _not_found("Session")
    return jsonify({"ok": True})


# ---- Messages -----------------------------------------------------------
def _deliver_message_email(repo: LiveRepository, message: Dict[str, Any]) -> None:
    """Send an outbound message and record whether delivery succeeded.

    Delivery runs on the email executor; if it has not finished within
    ``EMAIL_WAIT_SECONDS`` the message stays ``pending``.
    """
    message_id = message["id"]
    try:
        future = send_email_async(message["toEmails"], message["subject"], message["body"])
    except EmailConfigError as exc:
        current_app.logger.warning("Email for message %s skipped: %s", message_id, exc)
        repo.mark_email_status(message_id, EMAIL_FAILED)
        return
    except Exception as exc:
        current_app.logger.exception("Failed to queue email for message %s: %s", message_id, exc)
        repo.mark_email_status(message_id, EMAIL_FAILED)
        return

    try:
        future.result(timeout=current_app.config["EMAIL_WAIT_SECONDS"])
    except FutureTimeout:
        current_app.logger.info("Email for message %s queued", message_id)
    except Exception as exc:
        current_app.logger.warning("Email for message %s failed: %s", message_id, exc)
        repo.mark_email_status(message_id, EMAIL_FAILED)
    else:
        repo.mark_email_status(message_id, EMAIL_SENT, from_email=sender_address())


@api.get("/api/messages")
@require_login_api
def api_messages(ctx: RequestContext):
    items = repository().list_messages(
        ctx.user_id,
        case_id=_int_arg("caseId"),
        search=request.args.get("q", ""),
    )
    return jsonify({"ok": True, "messages": items})


@api.post("/api/messages")
@require_login_api
def api_create_message(ctx: RequestContext):
    repo = repository()
    data = _json_body()
    to_emails = data.get("toEmails") or []
    if isinstance(to_emails, str):
        to_emails = [part.strip() for part in to_emails.split(",")]
    case_id = data.get("caseId")
    message = repo.create_message(
        ctx.user_id,
        data.get("subject") or "",
        data.get("body") or "",
        case_id=int(case_id) if case_id not in (None, "") else None,
        to_emails=to_emails,
        send_as_email=as_bool(data.get("sendAsEmail", False)),
    )
    if message["direction"] == "email_outbound":
        _deliver_message_email(repo, message)
        message = repo.get_message(ctx.user_id, message["id"])
    return jsonify({"ok": True, "message": message}), 201


@api.get("/api/messages/<int:message_id>")
@require_login_api
def api_message(ctx: RequestContext, message_id: int):
    item = repository().get_message(ctx.user_id, message_id)
    if item is None:
        return _not_found("Message")
    return jsonify({"ok": True, "message": item})


@api.delete("/api/messages/<int:message_id>")
@require_login_api
def api_delete_message(ctx: RequestContext, message_id: int):
    if not repository().delete_message(ctx.user_id, message_id):
        return _not_found("Message")
    return jsonify({"ok": True})


# ---- Invoices -----------------------------------------------------------
@api.get("/api/invoices")
@require_login_api
def api_invoices(ctx: RequestContext):
    items = repository().list_invoices(ctx.user_id, status=request.args.get("status") or None)
    return jsonify({"ok": True, "invoices": items})


@api.get("/api/invoices/summary")
@require_login_api
def api_invoice_summary(ctx: RequestContext):
    repo = repository()
    county = aggregate_for_county_report(repo.invoice_records(ctx.user_id))
    return jsonify({
        "ok": True,
        "draftTotal": draft_total(repo.list_invoices(ctx.user_id)),
        "county": county.totals.as_dict(),
    })


@api.post("/api/invoices")
@require_login_api
def api_create_invoice(ctx: RequestContext):
    item = repository().create_invoice(ctx.user_id, _json_body())
    return jsonify({"ok": True, "invoice": item}), 201


@api.get("/api/invoices/<int:invoice_id>")
@require_login_api
def api_invoice(ctx: RequestContext, invoice_id: int):
    item = repository().get_invoice(ctx.user_id, invoice_id)
    if item is None:
        return _not_found("Invoice")
    return jsonify({"ok": True, "invoice": item})


@api.patch("/api/invoices/<int:invoice_id>")
@require_login_api
def api_update_invoice(ctx: RequestContext, invoice_id: int):
    item = repository().update_invoice(ctx.user_id, invoice_id, _json_body())
    if item is None:
        return _not_found("Invoice")
    return jsonify({"ok": True, "invoice": item})


@api.delete("/api/invoices/<int:invoice_id>")
@require_login_api
def api_delete_invoice(ctx: RequestContext, invoice_id: int):
    if not repository().delete_invoice(ctx.user_id, invoice_id):
        return _not_found("Invoice")
    return jsonify({"ok": True})


# ---- County reports -----------------------------------------------------
@api.get("/api/reports/jurisdictions")
@require_login_api
def api_jurisdictions(ctx: RequestContext):
    return jsonify({"ok": True, "jurisdictions": [j.as_dict() for j in JURISDICTIONS.values()]})


@api.get("/api/reports/county")
@require_login_api
def api_county_report(ctx: RequestContext):
    group = aggregate_for_county_report(repository().invoice_records(ctx.user_id))
    return jsonify({
        "ok": True,
        "records": [
            {
                "caseNumber": r.case_number,
                "matter": r.matter,
                "billTo": r.bill_to,
                "hours": r.hours,
                "rate": r.rate,
                "total": r.total,
            }
            for r in group.records
        ],
        "totals": group.totals.as_dict(),
    })


@api.get("/api/reports/<slug>/export")
@require_login_api
def api_export_report(ctx: RequestContext, slug: str):
    jurisdiction = get_jurisdiction(slug)
    if jurisdiction is None:
        return _not_found("Jurisdiction")

    payload, filename, mimetype = render_report(
        jurisdiction,
        repository().invoice_records(ctx.user_id),
        font_name=current_app.config["PDF_FONT_NAME"],
    )
    current_app.logger.info("User %s exported %s (%d bytes)", ctx.user_id, filename, len(payload))
    return send_file(
        BytesIO(payload),
        mimetype=mimetype,
        as_attachment=True,
        download_name=filename,
    )


# ---- Profile settings ---------------------------------------------------
@api.get("/api/user-settings")
@require_login_api
def api_user_settings(ctx: RequestContext):
    return jsonify({"ok": True, "profile": repository().get_profile(ctx.user_id)})


@api.patch("/api/user-settings")
@require_login_api
def api_update_user_settings(ctx: RequestContext):
    profile = repository().update_profile(ctx.user_id, _json_body())
    return jsonify({"ok": True, "profile": profile})


# ---- Error handlers -----------------------------------------------------
def _handle_value_error(exc: ValueError):
    return _error(str(exc) or "Invalid request.", 400)


def _handle_user_exists(exc: UserExistsError):
    return _error("A user with that email already exists.", 409)


def _handle_demo_mode(exc: DemoModeError):
    return _error(str(exc), 403)


def _handle_report_unavailable(exc: ReportUnavailableError):
    return _error(str(exc), 404)


# ---- Flask setup --------------------------------------------------------
def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Build the HarmonyDesk API; ``DEMO_MODE`` picks the repository once, here."""
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=config.SECRET_KEY,
        DATABASE=config.DATABASE_PATH,
        DEMO_MODE=config.DEMO_MODE,
        SESSION_TIMEOUT_MINUTES=config.SESSION_TIMEOUT_MINUTES,
        LOG_LEVEL=config.LOG_LEVEL,
        EMAIL_WAIT_SECONDS=1.0,
        PDF_FONT_PATH=config.PDF_FONT_PATH,
    )
    if overrides:
        app.config.update(overrides)
    app.permanent_session_lifetime = timedelta(minutes=app.config["SESSION_TIMEOUT_MINUTES"])
    app.logger.setLevel(app.config["LOG_LEVEL"])
    font_path = app.config["PDF_FONT_PATH"]
    app.config["PDF_FONT_NAME"] = register_pdf_font(font_path) if font_path else DEFAULT_PDF_FONT

    app.extensions[REPOSITORY_EXTENSION] = build_repository(bool(app.config["DEMO_MODE"]))
    if app.config["DEMO_MODE"]:
        logging.getLogger("harmonydesk.demo").info("Serving read-only demo data")

    app.register_blueprint(api)
    app.teardown_appcontext(close_app_db)
    app.register_error_handler(ValueError, _handle_value_error)
    app.register_error_handler(UserExistsError, _handle_user_exists)
    app.register_error_handler(DemoModeError, _handle_demo_mode)
    app.register_error_handler(ReportUnavailableError, _handle_report_unavailable)

    with app.app_context():
        get_app_db()

    return app


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    create_app().run(debug=False)
