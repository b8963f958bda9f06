"""Pricing calculator WSGI application."""
from __future__ import annotations

import logging
import math
import os
import secrets
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

from asgiref.wsgi import WsgiToAsgi
from dotenv import load_dotenv
from flask import Flask, Response, render_template, request, send_file
from markupsafe import escape

from pricing import EXPORT_VERSION, FACTOR_CATEGORIES, PricingEngine, format_currency, format_days
from rate_model import ROUNDING_NONE, normalise_rounding
from services.quote_documents import quote_filename, render_quote_markdown, render_quote_pdf
from services.sendgrid_mailer import QuoteAttachment, SendGridConfigurationError, SendGridMailer
from sessions import SessionStore

load_dotenv()
app = Flask(__name__)
asgi_app = WsgiToAsgi(app)

BUSINESS_MODEL_FIELDS = ("salary_budget", "growth_budget", "working_weeks", "team_members", "hours_per_week")
LOGO_PATH = Path(__file__).resolve().parent / "static" / "logo.png"


@dataclass(frozen=True)
class MailSettings:
    """Container for SendGrid-related configuration."""

    api_key: Optional[str]
    default_sender: Optional[str]
    sender_name: Optional[str]
    owner_recipient: Optional[str]
    fallback_contact_email: Optional[str]

    @classmethod
    def from_env(cls) -> "MailSettings":
        """Load mail configuration from environment variables."""

        return cls(
            api_key=os.getenv("SENDGRID_API_KEY"),
            default_sender=os.getenv("MAIL_DEFAULT_SENDER"),
            sender_name=os.getenv("MAIL_SENDER_NAME"),
            owner_recipient=os.getenv("MAIL_OWNER_RECIPIENT"),
            fallback_contact_email=os.getenv("MAIL_FALLBACK_CONTACT"),
        )


@dataclass(frozen=True)
class SessionSettings:
    """Lifetime and capacity limits for in-memory pricing sessions."""

    ttl_minutes: int
    max_sessions: int

    @classmethod
    def from_env(cls) -> "SessionSettings":
        return cls(
            ttl_minutes=_parse_positive_int(os.getenv("PRICING_SESSION_TTL_MINUTES"), default=240),
            max_sessions=_parse_positive_int(os.getenv("PRICING_MAX_SESSIONS"), default=500),
        )

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=self.ttl_minutes)


def _parse_positive_int(value: Optional[str], *, default: int) -> int:
    """Return a positive integer parsed from the supplied value."""

    if value is None:
        return default

    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default

    return parsed if parsed > 0 else default


def configure_logging(flask_app: Flask) -> None:
    """Configure file-based logging with rotation and archival."""

    base_dir = Path(__file__).resolve().parent
    log_dir = base_dir / "logs"
    archive_dir = base_dir / "log_archive"
    log_dir.mkdir(exist_ok=True)
    archive_dir.mkdir(exist_ok=True)

    handler = TimedRotatingFileHandler(
        log_dir / "pricing.log",
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
    )
    handler.setLevel(logging.INFO)
    flask_app.logger.addHandler(handler)
    flask_app.logger.setLevel(logging.INFO)

    # Engine, session and mailer modules log through their own module loggers.
    for name in ("pricing", "sessions", "services"):
        module_logger = logging.getLogger(name)
        module_logger.addHandler(handler)
        module_logger.setLevel(logging.INFO)

    archive_old_logs(log_dir, archive_dir, flask_app.logger)


def archive_old_logs(log_dir: Path, archive_dir: Path, logger: logging.Logger) -> None:
    """Compress rotated logs on the first day of each month."""

    today = datetime.today()
    if today.day != 1:
        return

    for log_file in log_dir.glob("pricing.log.*"):
        archive_base = archive_dir / log_file.name
        shutil.make_archive(str(archive_base), "zip", log_dir, log_file.name)
        log_file.unlink(missing_ok=True)
        logger.info("Archived log file: %s", log_file.name)


def resolve_secret_key(logger: logging.Logger) -> str:
    """Return the signing key for session tokens, generating a temporary value if required."""

    secret_key = os.getenv("SECRET_KEY")
    if secret_key:
        return secret_key

    ephemeral_key = secrets.token_urlsafe(32)
    logger.warning(
        "SECRET_KEY is not configured; generated ephemeral key for this process. "
        "Pricing session tokens will not survive a restart."
    )
    return ephemeral_key


def initialise_mailer(settings: MailSettings, logger: logging.Logger) -> Optional[SendGridMailer]:
    """Create the SendGrid mailer if the minimum configuration exists."""

    if not settings.default_sender:
        logger.warning("MAIL_DEFAULT_SENDER is not configured; quote emails disabled.")
        return None

    mailer_instance = SendGridMailer(
        api_key=settings.api_key,
        default_sender=settings.default_sender,
        logger=logger,
    )

    if not settings.api_key:
        logger.warning("SENDGRID_API_KEY is not configured; quote delivery will fail until provided.")

    return mailer_instance


MAIL_SETTINGS = MailSettings.from_env()
SESSION_SETTINGS = SessionSettings.from_env()

configure_logging(app)
app.secret_key = resolve_secret_key(app.logger)
mailer = initialise_mailer(MAIL_SETTINGS, app.logger)
session_store = SessionStore(
    app.secret_key,
    ttl=SESSION_SETTINGS.ttl,
    max_sessions=SESSION_SETTINGS.max_sessions,
    logger=app.logger,
)


@app.context_processor
def inject_pricing_context() -> dict[str, object]:
    """Expose money and day formatting to Jinja templates."""

    return {
        "format_currency": format_currency,
        "format_days": format_days,
        "EXPORT_VERSION": EXPORT_VERSION,
    }


# ----------------------------------------------------------------------
# Request helpers
# ----------------------------------------------------------------------


def _error(message: str, status: int) -> tuple[dict[str, str], int]:
    return {"status": "error", "message": message}, status


def _success(engine: PricingEngine, status: int = 200, **extra: Any) -> tuple[dict[str, Any], int]:
    return {"status": "success", **extra, "summary": engine.get_summary()}, status


def _json_body() -> Optional[dict[str, Any]]:
    """Return the request's JSON object, or ``None`` when the body is not an object."""

    body = request.get_json(silent=True)
    if body is None and not request.get_data():
        return {}
    return body if isinstance(body, dict) else None


def _parse_number(value: Any) -> Optional[float]:
    """Return a finite number parsed from the supplied JSON value."""

    if value is None or isinstance(value, bool):
        return None

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None

    return parsed if math.isfinite(parsed) else None


def _parse_non_negative(value: Any) -> Optional[float]:
    parsed = _parse_number(value)
    return parsed if parsed is not None and parsed >= 0 else None


def _parse_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def with_pricing_session(view: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the session token and run the view while holding the session lock."""

    @wraps(view)
    def wrapper(token: str, *args: Any, **kwargs: Any) -> Any:
        pricing_session = session_store.get(token)
        if pricing_session is None:
            app.logger.info("Pricing session token unknown or expired.")
            return _error("Pricing session not found or expired.", 404)

        with pricing_session.lock:
            return view(pricing_session.engine, *args, **kwargs)

    return wrapper


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------


@app.post("/api/sessions")
def create_session():
    token, pricing_session = session_store.create()
    with pricing_session.lock:
        return _success(pricing_session.engine, 201, token=token)


@app.get("/api/sessions/<token>")
@with_pricing_session
def session_summary(engine: PricingEngine):
    return _success(engine)


@app.delete("/api/sessions/<token>")
def close_session(token: str):
    if not session_store.discard(token):
        return _error("Pricing session not found or expired.", 404)
    return {"status": "success", "message": "Pricing session closed."}


# ----------------------------------------------------------------------
# Business model
# ----------------------------------------------------------------------


@app.patch("/api/sessions/<token>/business-model")
@with_pricing_session
def update_business_model(engine: PricingEngine):
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    updates: dict[str, float] = {}
    invalid = []
    for field_name in BUSINESS_MODEL_FIELDS:
        if field_name not in body:
            continue
        parsed = _parse_non_negative(body[field_name])
        if parsed is None:
            invalid.append(field_name)
        else:
            updates[field_name] = parsed

    if invalid:
        app.logger.warning("Business model update rejected for fields: %s", ", ".join(invalid))
        return _error(f"Fields must be non-negative numbers: {', '.join(invalid)}.", 400)

    engine.update_business_model(**updates)
    return _success(engine)


@app.put("/api/sessions/<token>/rounding")
@with_pricing_session
def set_rounding(engine: PricingEngine):
    body = _json_body()
    if body is None or "rounding" not in body:
        return _error("Provide a rounding value: \"none\" or a positive whole number.", 400)

    requested = body["rounding"]
    rounding = normalise_rounding(requested)
    if rounding == ROUNDING_NONE and requested not in (None, ROUNDING_NONE):
        app.logger.warning("Rounding update rejected: %r", requested)
        return _error("Rounding must be \"none\" or a positive whole number.", 400)

    engine.set_rounding(rounding)
    return _success(engine)


# ----------------------------------------------------------------------
# Project details and tasks
# ----------------------------------------------------------------------


@app.put("/api/sessions/<token>/project")
@with_pricing_session
def update_project(engine: PricingEngine):
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    if "client_name" in body:
        engine.set_client_name(_parse_text(body["client_name"]))
    if "preparer_name" in body:
        engine.set_preparer_name(_parse_text(body["preparer_name"]))
    return _success(engine)


@app.post("/api/sessions/<token>/tasks")
@with_pricing_session
def add_task(engine: PricingEngine):
    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    name = _parse_text(body.get("name"))
    if not name:
        return _error("Please enter a task name.", 400)

    days = _parse_number(body.get("days"))
    if days is None or days <= 0:
        app.logger.warning("Task %r rejected: days must be positive (got %r).", name, body.get("days"))
        return _error("Please enter a valid number of days.", 400)

    task = engine.add_task(name, days)
    return _success(engine, 201, task={"id": task.id, "name": task.name, "days": task.days, "cost": task.cost})


@app.delete("/api/sessions/<token>/tasks/<task_id>")
@with_pricing_session
def remove_task(engine: PricingEngine, task_id: str):
    engine.remove_task(task_id)
    return _success(engine)


# ----------------------------------------------------------------------
# Uplift and discount factors
# ----------------------------------------------------------------------


def _parse_allocation(value: Any) -> Optional[float]:
    allocation = _parse_number(value)
    return allocation if allocation is not None and 0 < allocation <= 100 else None


@app.post("/api/sessions/<token>/factors/<category>")
@with_pricing_session
def add_factor(engine: PricingEngine, category: str):
    if category not in FACTOR_CATEGORIES:
        return _error("Factor category must be 'uplift' or 'discount'.", 404)

    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    name = _parse_text(body.get("name"))
    if not name:
        return _error("Please enter a factor name.", 400)

    allocation = _parse_allocation(body.get("allocation"))
    if allocation is None:
        app.logger.warning("%s factor %r rejected: invalid allocation %r.", category, name, body.get("allocation"))
        return _error("Allocation must be greater than 0 and at most 100.", 400)

    selected = body.get("selected")
    if selected is not None and not isinstance(selected, bool):
        return _error("'selected' must be true or false.", 400)

    if category == "uplift":
        factor = engine.add_uplift_factor(name, allocation, selected=selected)
    else:
        factor = engine.add_discount_factor(name, allocation, selected=selected)
    return _success(engine, 201, factor=factor.to_dict())


@app.patch("/api/sessions/<token>/factors/<category>/<factor_id>")
@with_pricing_session
def update_factor(engine: PricingEngine, category: str, factor_id: str):
    group = engine.factor_group(category)
    if group is None:
        return _error("Factor category must be 'uplift' or 'discount'.", 404)
    if group.find(factor_id) is None:
        return _error("Factor not found.", 404)

    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    allocation = None
    if "allocation" in body:
        allocation = _parse_allocation(body["allocation"])
        if allocation is None:
            return _error("Allocation must be greater than 0 and at most 100.", 400)

    selected = body.get("selected")
    if selected is not None and not isinstance(selected, bool):
        return _error("'selected' must be true or false.", 400)

    if category == "uplift":
        if allocation is not None:
            engine.update_uplift_factor_allocation(factor_id, allocation)
        if selected is not None:
            engine.toggle_uplift_factor(factor_id, selected)
    else:
        if allocation is not None:
            engine.update_discount_factor_allocation(factor_id, allocation)
        if selected is not None:
            engine.toggle_discount_factor(factor_id, selected)
    return _success(engine)


@app.delete("/api/sessions/<token>/factors/<category>/<factor_id>")
@with_pricing_session
def remove_factor(engine: PricingEngine, category: str, factor_id: str):
    if category == "uplift":
        engine.remove_uplift_factor(factor_id)
    elif category == "discount":
        engine.remove_discount_factor(factor_id)
    else:
        return _error("Factor category must be 'uplift' or 'discount'.", 404)
    return _success(engine)


@app.put("/api/sessions/<token>/factors/<category>/max")
@with_pricing_session
def set_factor_maximum(engine: PricingEngine, category: str):
    if category not in FACTOR_CATEGORIES:
        return _error("Factor category must be 'uplift' or 'discount'.", 404)

    body = _json_body()
    maximum = _parse_number(body.get("max")) if body is not None else None
    if maximum is None:
        return _error("Provide a numeric 'max' percentage.", 400)

    # Out-of-range values are clamped to 0-100 by the engine.
    if category == "uplift":
        engine.set_max_uplift(maximum)
    else:
        engine.set_max_discount(maximum)
    return _success(engine)


# ----------------------------------------------------------------------
# Currencies and comparison
# ----------------------------------------------------------------------


@app.patch("/api/sessions/<token>/currencies/<code>")
@with_pricing_session
def update_currency(engine: PricingEngine, code: str):
    code = code.upper()
    if code not in engine.currencies:
        return _error(f"Unknown currency {code}.", 404)

    body = _json_body()
    if body is None:
        return _error("Request body must be a JSON object.", 400)

    rate = None
    if "rate" in body:
        rate = _parse_number(body["rate"])
        if rate is None or rate <= 0:
            return _error("Conversion rate must be greater than 0.", 400)

    enabled = body.get("enabled")
    if enabled is not None and not isinstance(enabled, bool):
        return _error("'enabled' must be true or false.", 400)

    if rate is not None:
        engine.set_currency_rate(code, rate)
    if enabled is not None:
        engine.toggle_currency(code, enabled)
    return _success(engine)


@app.get("/api/sessions/<token>/comparison")
@with_pricing_session
def rate_comparison(engine: PricingEngine):
    return {"status": "success", "comparison": engine.get_rate_comparison().to_dict()}


# ----------------------------------------------------------------------
# Export and import
# ----------------------------------------------------------------------


@app.get("/api/sessions/<token>/export")
@with_pricing_session
def export_project(engine: PricingEngine):
    filename = quote_filename(engine.client_name, "json")
    app.logger.info("Exporting project as %s", filename)
    return Response(
        engine.export_project_data(),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.post("/api/sessions/<token>/import")
@with_pricing_session
def import_project(engine: PricingEngine):
    if not engine.import_project_data(request.get_data(as_text=True)):
        return _error("Failed to import project. The file may be invalid or corrupted.", 400)
    return _success(engine, message="Project imported successfully.")


# ----------------------------------------------------------------------
# Client quote
# ----------------------------------------------------------------------


def _client_quote(engine: PricingEngine) -> Optional[dict[str, Any]]:
    """Return the client quote, or ``None`` when no client name has been entered."""

    if not engine.client_name.strip():
        app.logger.info("Quote requested before a client name was entered.")
        return None
    return engine.prepare_client_quote()


_MISSING_CLIENT_MESSAGE = "Please enter a client name before generating a quote."


@app.get("/api/sessions/<token>/quote")
@with_pricing_session
def client_quote(engine: PricingEngine):
    quote = _client_quote(engine)
    if quote is None:
        return _error(_MISSING_CLIENT_MESSAGE, 400)
    return {"status": "success", "quote": quote}


@app.get("/api/sessions/<token>/quote.pdf")
@with_pricing_session
def client_quote_pdf(engine: PricingEngine):
    quote = _client_quote(engine)
    if quote is None:
        return _error(_MISSING_CLIENT_MESSAGE, 400)
    return send_file(
        render_quote_pdf(quote, logo_path=LOGO_PATH),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=quote_filename(engine.client_name, "pdf"),
    )


@app.get("/api/sessions/<token>/quote.md")
@with_pricing_session
def client_quote_markdown(engine: PricingEngine):
    quote = _client_quote(engine)
    if quote is None:
        return _error(_MISSING_CLIENT_MESSAGE, 400)
    filename = quote_filename(engine.client_name, "md")
    return Response(
        render_quote_markdown(quote),
        mimetype="text/markdown",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.get("/api/sessions/<token>/quote.html")
@with_pricing_session
def client_quote_html(engine: PricingEngine):
    quote = _client_quote(engine)
    if quote is None:
        return _error(_MISSING_CLIENT_MESSAGE, 400)
    return render_template("quote.html", quote=quote)


@app.post("/api/sessions/<token>/quote/email")
@with_pricing_session
def email_client_quote(engine: PricingEngine):
    quote = _client_quote(engine)
    if quote is None:
        return _error(_MISSING_CLIENT_MESSAGE, 400)

    body = _json_body()
    recipient = _parse_text(body.get("recipient")) if body is not None else ""
    if not recipient:
        return _error("Please provide a recipient email address.", 400)

    if mailer is None or not mailer.is_configured:
        app.logger.error("Quote email attempted without an operational mailer.")
        return _error("Email delivery is temporarily unavailable. Please try again later.", 503)

    intro = (
        f"<p>Please find attached the project quote for {escape(quote['client_name'])}.</p>"
    )
    try:
        result = mailer.send_quote(
            recipient=recipient,
            client_name=quote["client_name"],
            html_body=intro + render_template("quote.html", quote=quote),
            attachment=QuoteAttachment(
                content=render_quote_pdf(quote, logo_path=LOGO_PATH).getvalue(),
                filename=quote_filename(engine.client_name, "pdf"),
            ),
            copy_to=[MAIL_SETTINGS.owner_recipient] if MAIL_SETTINGS.owner_recipient else [],
            reply_to=MAIL_SETTINGS.owner_recipient,
            sender_name=MAIL_SETTINGS.sender_name,
        )
    except (SendGridConfigurationError, ValueError) as exc:
        app.logger.error("Failed to send quote email: %s", exc)
        return _error("Email delivery is temporarily unavailable. Please try again later.", 503)

    if not result.ok:
        fallback_contact = MAIL_SETTINGS.fallback_contact_email or "our support team"
        return _error(
            f"Sorry, the quote could not be emailed. Please try again later or contact {fallback_contact}.",
            502,
        )

    app.logger.info("Quote for %s emailed to %s", quote["client_name"], recipient)
    return {"status": "success", "message": "Quote sent."}


if __name__ == "__main__":
    import argparse

    default_host = os.getenv("HOST", "0.0.0.0")
    default_port = int(os.getenv("PORT", "8080"))

    parser = argparse.ArgumentParser(description="Run the pricing calculator service.")
    parser.add_argument("--host", default=default_host, help="Host to run the server on")
    parser.add_argument("--port", type=int, default=default_port, help="Port to run the server on")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    app.logger.info("Starting pricing service on %s:%s (debug=%s)", args.host, args.port, args.debug)

    import uvicorn

    if args.debug:
        uvicorn.run("app:asgi_app", host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(asgi_app, host=args.host, port=args.port)
