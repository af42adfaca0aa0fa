from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv
from flask import (
    Flask,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from models import Category, DraftEntry, InternType, TimeEntry, apply_fields
from stores import LocalStore, TimeLoggerState
from summary import build_report, category_totals, current_week_entries, mailto_link, week_bounds

BASE_DIR = Path(__file__).resolve().parent
DATABASE_PATH = BASE_DIR / "timelogger.db"
DEFAULT_REPORT_RECIPIENT = "mmaine@centralassembly.org"

VIEWS = ("profile", "logger", "summary")
DRAFT_FIELDS = ("date", "category", "activity", "time_in", "time_out", "notes")
PROFILE_FIELDS = ("name", "email", "supervisor", "intern_type")

log = logging.getLogger(__name__)


def format_hours(value: float) -> str:
    return f"{float(value):.1f}"


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=os.getenv("SECRET_KEY", "change-me"),
        DATABASE=os.getenv("TIMELOGGER_DATABASE", str(DATABASE_PATH)),
        REPORT_RECIPIENT=os.getenv("REPORT_RECIPIENT", DEFAULT_REPORT_RECIPIENT),
    )
    if test_config:
        app.config.update(test_config)

    app.jinja_env.filters["hours"] = format_hours

    Path(app.config["DATABASE"]).parent.mkdir(parents=True, exist_ok=True)
    state = TimeLoggerState(LocalStore(app.config["DATABASE"]))
    clock = app.config.get("CLOCK")
    app.extensions["time_logger"] = state.load(clock().date() if clock else None)
    log.info("Loaded %d saved entries from %s", len(state.entries.all()), app.config["DATABASE"])

    @app.context_processor
    def inject_globals() -> Dict[str, Any]:
        return {
            "categories": list(Category),
            "intern_types": list(InternType),
            "active_view": session.get("active_view", "profile"),
        }

    register_routes(app)
    return app


def get_state() -> TimeLoggerState:
    return current_app.extensions["time_logger"]


def _now() -> datetime:
    clock = current_app.config.get("CLOCK")
    return clock() if clock else datetime.now()


def _today() -> date:
    return _now().date()


def _set_view(view: str) -> None:
    session["active_view"] = view


def _fields(payload: Mapping[str, Any], names) -> Dict[str, Any]:
    return {name: payload.get(name) for name in names if name in payload}


def _draft_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    # JSON clients send the stored camelCase names.
    aliases = {"timeIn": "time_in", "timeOut": "time_out"}
    data = dict(payload)
    for alias, name in aliases.items():
        if alias in data and name not in data:
            data[name] = data[alias]
    return _fields(data, DRAFT_FIELDS)


def _profile_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data = dict(payload)
    if "internType" in data and "intern_type" not in data:
        data["intern_type"] = data["internType"]
    return _fields(data, PROFILE_FIELDS)


def _json_body() -> Optional[Dict[str, Any]]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _confirmed(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("yes", "true", "1")


def summary_payload(state: TimeLoggerState, now: datetime) -> Dict[str, Any]:
    week_entries = current_week_entries(state.entries.all(), now)
    totals = category_totals(week_entries)
    week_start, week_end = week_bounds(now)
    report = build_report(state.profile.profile, week_entries, now)
    return {
        "week_start": week_start.isoformat(),
        "week_end": week_end.isoformat(),
        "entries": [entry.to_dict() for entry in week_entries],
        "totals": {
            category.value: {"hours": total.hours, "count": total.count}
            for category, total in totals.items()
        },
        "total_hours": sum(total.hours for total in totals.values()),
        "subject": report.subject,
        "body": report.body,
    }


def register_routes(app: Flask) -> None:
    @app.route("/")
    def index():
        view = session.get("active_view", "profile")
        if view not in VIEWS:
            view = "profile"
        return redirect(url_for(view))

    @app.route("/profile", methods=["GET", "POST"])
    def profile():
        state = get_state()
        _set_view("profile")
        if request.method == "POST":
            error = state.profile.update(**_profile_fields(request.form))
            if error:
                flash(error, "error")
            else:
                flash("Profile saved.", "success")
            return redirect(url_for("profile"))
        return render_template("profile.html", profile=state.profile.profile)

    @app.route("/logger")
    def logger():
        state = get_state()
        _set_view("logger")
        return render_template(
            "logger.html",
            draft=state.draft.draft,
            editing=state.draft.is_editing,
            status=state.draft.status,
            timed_in=state.draft.is_timed_in,
        )

    @app.route("/draft", methods=["POST"])
    def update_draft():
        error = get_state().draft.update(**_draft_fields(request.form))
        if error:
            flash(error, "error")
        return redirect(url_for("logger"))

    @app.route("/draft/clock-in", methods=["POST"])
    def clock_in():
        stamp = get_state().draft.clock_in(_now())
        flash(f"Timed in at {stamp}.", "success")
        return redirect(url_for("logger"))

    @app.route("/draft/clock-out", methods=["POST"])
    def clock_out():
        stamp = get_state().draft.clock_out(_now())
        flash(f"Timed out at {stamp}.", "success")
        return redirect(url_for("logger"))

    @app.route("/entries/save", methods=["POST"])
    def save_entry():
        state = get_state()
        if request.form:
            error = state.draft.update(**_draft_fields(request.form))
            if error:
                flash(error, "error")
                return redirect(url_for("logger"))

        editing = state.draft.is_editing
        error, _ = state.submit_draft(_today())
        if error:
            flash(error, "error")
            return redirect(url_for("logger"))
        flash("Entry updated." if editing else "Entry added.", "success")
        return redirect(url_for("logger"))

    @app.route("/entries/<entry_id>/edit", methods=["POST"])
    def edit_entry(entry_id: str):
        state = get_state()
        entry = state.entries.get(entry_id)
        if entry is None:
            flash("Entry not found.", "error")
            return redirect(url_for("summary"))
        state.draft.load_entry(entry)
        return redirect(url_for("logger"))

    @app.route("/entries/<entry_id>/delete", methods=["POST"])
    def delete_entry(entry_id: str):
        if not _confirmed(request.form.get("confirm")):
            flash("Deletion cancelled.", "info")
            return redirect(url_for("summary"))
        if get_state().delete_entry(entry_id):
            flash("Entry deleted.", "success")
        return redirect(url_for("summary"))

    @app.route("/summary")
    def summary():
        state = get_state()
        _set_view("summary")
        now = _now()
        week_entries = current_week_entries(state.entries.all(), now)
        week_start, week_end = week_bounds(now)
        totals = category_totals(week_entries)
        return render_template(
            "summary.html",
            week_start=week_start,
            week_end=week_end,
            week_entries=week_entries,
            totals=totals,
            total_hours=sum(total.hours for total in totals.values()),
            entries=list(reversed(state.entries.all())),
        )

    @app.route("/summary/send", methods=["POST"])
    def send_report():
        state = get_state()
        now = _now()
        week_entries = current_week_entries(state.entries.all(), now)
        report = build_report(state.profile.profile, week_entries, now)
        log.info("Opening mail composer for %s", report.subject)
        return redirect(mailto_link(report, current_app.config["REPORT_RECIPIENT"]))

    @app.route("/api/entries", methods=["GET"])
    def api_entries():
        return jsonify([entry.to_dict() for entry in get_state().entries.all()])

    @app.route("/api/entries", methods=["POST"])
    def api_create_entry():
        state = get_state()
        data = _json_body()
        if data is None:
            return jsonify({"error": "Invalid payload."}), 400
        error, entry = _commit_payload(state, data, None)
        if error:
            return jsonify({"error": error}), 400
        return jsonify(entry.to_dict()), 201

    @app.route("/api/entries/<entry_id>", methods=["PUT"])
    def api_update_entry(entry_id: str):
        state = get_state()
        existing = state.entries.get(entry_id)
        if existing is None:
            return jsonify({"error": "Entry not found"}), 404
        data = _json_body()
        if data is None:
            return jsonify({"error": "Invalid payload."}), 400
        error, entry = _commit_payload(state, data, existing)
        if error:
            return jsonify({"error": error}), 400
        return jsonify(entry.to_dict())

    @app.route("/api/entries/<entry_id>", methods=["DELETE"])
    def api_delete_entry(entry_id: str):
        if not _confirmed(request.args.get("confirm")):
            return jsonify({"error": "Deletion must be confirmed"}), 409
        if not get_state().delete_entry(entry_id):
            return jsonify({"error": "Entry not found"}), 404
        return jsonify({"status": "ok"})

    @app.route("/api/profile", methods=["GET", "PUT"])
    def api_profile():
        state = get_state()
        if request.method == "PUT":
            data = _json_body()
            if data is None:
                return jsonify({"error": "Invalid payload."}), 400
            error = state.profile.update(**_profile_fields(data))
            if error:
                return jsonify({"error": error}), 400
        return jsonify(state.profile.profile.to_dict())

    @app.route("/api/draft", methods=["GET", "PUT"])
    def api_draft():
        state = get_state()
        if request.method == "PUT":
            data = _json_body()
            if data is None:
                return jsonify({"error": "Invalid payload."}), 400
            error = state.draft.update(**_draft_fields(data))
            if error:
                return jsonify({"error": error}), 400
        payload = state.draft.draft.to_dict()
        payload["editingId"] = state.draft.editing_id
        payload["timedIn"] = state.draft.is_timed_in
        payload["status"] = state.draft.status
        return jsonify(payload)

    @app.route("/api/summary", methods=["GET"])
    def api_summary():
        return jsonify(summary_payload(get_state(), _now()))


def _commit_payload(
    state: TimeLoggerState, payload: Mapping[str, Any], existing: Optional[TimeEntry]
) -> Tuple[Optional[str], Optional[TimeEntry]]:
    # API writes go straight to the entry store and leave the saved draft alone.
    base = existing.to_draft() if existing is not None else DraftEntry(date=_today())
    error, draft = apply_fields(base, _draft_fields(payload))
    if error:
        return error, None
    return state.entries.commit(draft, existing.id if existing else None)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    application = create_app()
    application.run(debug=True, host="0.0.0.0", port=5001, threaded=False)
