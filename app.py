# app.py
import hmac
import io
import logging
from pathlib import Path

from flask import (
    Flask, render_template, request, redirect, url_for,
    flash, send_file, jsonify
)
from flask_login import (
    LoginManager, UserMixin, login_user, logout_user,
    login_required, current_user
)

from config import Config
from errors import InvalidInvoice, InvalidStyleConfig, RenderError
from invoice import CURRENCIES, download_filename, invoice_from_mapping, new_invoice
from models import (
    Base, make_engine, make_session_factory,
    DuplicateEmailError, create_subscriber, list_subscribers
)
from pdf_layout import (
    BORDER_STYLES, FONT_FAMILIES, FONT_SIZES, HEADER_STYLES, LAYOUTS,
    StyleConfig, style_from_mapping
)
from pdf_service import render

logger = logging.getLogger(__name__)

login_manager = LoginManager()
login_manager.login_view = "subscribers_unlock"

GATE_USER_ID = "subscribers-gate"

INVOICE_FIELDS = [
    "invoiceNumber", "date", "dueDate", "status",
    "businessName", "businessAddress", "businessEmail", "businessPhone",
    "clientName", "clientAddress", "clientEmail", "clientPhone",
    "projectTitle", "description",
    "currency", "taxRate", "paymentMethod", "notes", "terms",
]

STYLE_FIELDS = [
    "primaryColor", "secondaryColor", "accentColor",
    "fontFamily", "fontSize", "layout", "headerStyle",
    "borderStyle", "watermarkText", "watermarkOpacity",
]


# -----------------------------
# Flask-Login user wrapper
# -----------------------------
class GateUser(UserMixin):
    """Whoever typed the shared subscriber-list secret. Not a real account."""

    def __init__(self):
        self.id = GATE_USER_ID


@login_manager.user_loader
def load_user(user_id: str):
    return GateUser() if user_id == GATE_USER_ID else None


# -----------------------------
# Helpers
# -----------------------------
def _parse_repeating_items(descriptions, quantities, rates):
    out = []
    n = max(len(descriptions), len(quantities), len(rates))
    for i in range(n):
        desc = (descriptions[i] if i < len(descriptions) else "").strip()
        qty = (quantities[i] if i < len(quantities) else "").strip()
        rate = (rates[i] if i < len(rates) else "").strip()
        if not desc and not rate:
            continue
        out.append({"id": str(len(out) + 1), "description": desc, "quantity": qty, "rate": rate})
    return out


def _invoice_mapping_from_form(form, files) -> dict:
    data = {k: form.get(k) for k in INVOICE_FIELDS if form.get(k) is not None}
    data["items"] = _parse_repeating_items(
        form.getlist("item_description"),
        form.getlist("item_quantity"),
        form.getlist("item_rate"),
    )
    upload = files.get("logo")
    if upload and upload.filename:
        data["logo"] = upload.read() or None
    return data


def _style_from_form(form) -> StyleConfig:
    data = {k: form.get(f"style.{k}") for k in STYLE_FIELDS if form.get(f"style.{k}")}
    # unchecked checkboxes are simply absent
    data["showBorder"] = "style.showBorder" in form
    data["watermark"] = "style.watermark" in form
    return style_from_mapping(data)


def _pdf_response(pdf_bytes: bytes, filename: str, as_attachment: bool):
    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=as_attachment,
        download_name=filename,
    )


def _format_created(dt):
    """October 19, 2026 / 1:05pm"""
    if dt is None:
        return "", ""
    hour = dt.hour % 12 or 12
    ampm = "am" if dt.hour < 12 else "pm"
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}", f"{hour}:{dt.minute:02d}{ampm}"


def _ensure_dirs():
    Path("instance").mkdir(parents=True, exist_ok=True)


# -----------------------------
# App factory
# -----------------------------
def create_app(test_config: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    db_url = app.config["SQLALCHEMY_DATABASE_URI"]
    if db_url.startswith("sqlite"):
        _ensure_dirs()

    login_manager.init_app(app)

    engine = make_engine(db_url, echo=app.config.get("SQLALCHEMY_ECHO", False))
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    def db_session():
        return SessionLocal()

    choices = {
        "currencies": CURRENCIES,
        "font_families": tuple(FONT_FAMILIES),
        "font_sizes": FONT_SIZES,
        "layouts": LAYOUTS,
        "header_styles": HEADER_STYLES,
        "border_styles": BORDER_STYLES,
    }

    # -----------------------------
    # Landing
    # -----------------------------
    @app.route("/")
    def index():
        return render_template("index.html")

    # -----------------------------
    # Invoice builder
    # -----------------------------
    @app.route("/create")
    def create():
        return render_template(
            "create.html",
            inv=new_invoice(),
            style=StyleConfig(),
            **choices,
        )

    def _render_from_form(is_preview: bool):
        try:
            data = _invoice_mapping_from_form(request.form, request.files)
            doc = invoice_from_mapping(data, max_logo_bytes=app.config["MAX_LOGO_BYTES"])
            style = _style_from_form(request.form)
            pdf_bytes = render(doc, style, is_preview=is_preview)
        except (InvalidInvoice, InvalidStyleConfig) as e:
            flash(str(e), "error")
            return render_template("create.html", inv=new_invoice(), style=StyleConfig(), **choices), 400
        except RenderError:
            flash("Could not generate the PDF. Please check your input and try again.", "error")
            return render_template("create.html", inv=new_invoice(), style=StyleConfig(), **choices), 500

        return _pdf_response(pdf_bytes, download_filename(doc), as_attachment=not is_preview)

    @app.route("/create/preview", methods=["POST"])
    def create_preview():
        return _render_from_form(is_preview=True)

    @app.route("/create/pdf", methods=["POST"])
    def create_pdf():
        return _render_from_form(is_preview=False)

    @app.route("/api/invoices/render", methods=["POST"])
    def api_render_invoice():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "Expected a JSON object"}), 400

        is_preview = (request.args.get("preview") or "").strip() in ("1", "true")
        try:
            doc = invoice_from_mapping(body, max_logo_bytes=app.config["MAX_LOGO_BYTES"])
            style = style_from_mapping(body.get("style"))
            pdf_bytes = render(doc, style, is_preview=is_preview)
        except InvalidStyleConfig as e:
            return jsonify({"error": str(e), "field": e.field}), 400
        except InvalidInvoice as e:
            return jsonify({"error": str(e)}), 400
        except RenderError:
            return jsonify({"error": "Could not generate the PDF"}), 500

        return _pdf_response(pdf_bytes, download_filename(doc), as_attachment=not is_preview)

    # -----------------------------
    # Subscriptions
    # -----------------------------
    @app.route("/api/subscribe", methods=["POST"])
    def api_subscribe():
        body = request.get_json(silent=True)
        if body is None:
            body = request.form
        email = body.get("email") if hasattr(body, "get") else None

        if not email or not isinstance(email, str) or not email.strip():
            return jsonify({"error": "Email is required"}), 400

        email = email.strip().lower()
        try:
            with db_session() as s:
                sub = create_subscriber(s, email)
                payload = sub.to_dict()
        except DuplicateEmailError:
            logger.info("Duplicate subscription attempt")
            return jsonify({"error": "This email is already subscribed"}), 400
        except Exception:
            logger.exception("Subscribing failed")
            return jsonify({"error": "Something went wrong"}), 500

        return jsonify({"message": "Successfully subscribed", "subscriber": payload}), 201

    @app.route("/api/subscribers")
    def api_subscribers():
        try:
            with db_session() as s:
                rows = [sub.to_dict() for sub in list_subscribers(s)]
        except Exception:
            logger.exception("Error fetching subscribers")
            return jsonify({"error": "Something went wrong"}), 500
        return jsonify(rows), 200

    # -----------------------------
    # Subscriber list (shared-secret gate)
    # -----------------------------
    @app.route("/subscribers/unlock", methods=["GET", "POST"])
    def subscribers_unlock():
        if current_user.is_authenticated:
            return redirect(url_for("subscribers"))

        if request.method == "POST":
            password = request.form.get("password") or ""
            expected = app.config["SUBSCRIBERS_PASSWORD"]
            if hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8")):
                login_user(GateUser())
                return redirect(url_for("subscribers"))
            flash("Incorrect password.", "error")

        return render_template("subscribers_unlock.html")

    @app.route("/subscribers")
    @login_required
    def subscribers():
        with db_session() as s:
            rows = []
            for sub in list_subscribers(s):
                date_part, time_part = _format_created(sub.created_at)
                rows.append({"id": sub.id, "email": sub.email, "date": date_part, "time": time_part})
        return render_template("subscribers.html", subscribers=rows)

    @app.route("/subscribers/lock", methods=["POST"])
    @login_required
    def subscribers_lock():
        logout_user()
        return redirect(url_for("index"))

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
