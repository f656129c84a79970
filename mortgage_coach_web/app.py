"""JSON API for the mortgage coach.

Each browser gets a random token in the Flask session; its inputs are stored
per token in the ``StateStore``. Every change to the inputs recomputes the
scenario on the next read and supersedes any coaching request still pending
for that browser.
"""

from __future__ import annotations

import os
import threading
from collections import OrderedDict
from typing import Any, Mapping, Optional, Tuple
from uuid import uuid4

from flask import Flask, current_app, jsonify, request, session

from mortgage_coach.chart import PAYMENT_MIX_MAX_BARS, aggregate_by_year
from mortgage_coach.coach import CoachSession, immediate_scheduler
from mortgage_coach.data_models import CoachResponse, ExtraTier, InterestPhase, PrepaymentTip, ScenarioResult
from mortgage_coach.engine import compute_scenario, normalize_month
from mortgage_coach.errors import MortgageError
from mortgage_coach.serialization import bars_to_list, coach_response_to_dict, scenario_to_dict
from mortgage_coach.state import AppState, add_extra_payment, apply_tip, remove_extra_payment
from mortgage_coach.utils import normalize_money, parse_iso_date
from mortgage_coach_web.state_store import create_store_from_env


def _parse_delay(value: Optional[str]) -> Tuple[int, int]:
    if not value:
        return (450, 800)
    low, _, high = value.partition(",")
    return (int(low), int(high or low))


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["STATE_DATABASE_URL"] = os.environ.get("MORTGAGE_STATE_DATABASE_URL")
    app.config["COACH_DELAY_MS"] = _parse_delay(os.environ.get("COACH_DELAY_MS"))
    app.config["COACH_IMMEDIATE"] = False
    app.config["COACH_MAX_SESSIONS"] = int(os.environ.get("COACH_MAX_SESSIONS", "1024"))
    if config:
        app.config.update(config)

    app.extensions["state_store"] = create_store_from_env(app.config["STATE_DATABASE_URL"])
    app.extensions["coach_sessions"] = OrderedDict()
    app.extensions["coach_sessions_lock"] = threading.Lock()

    _register_routes(app)
    return app


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _store():
    return current_app.extensions["state_store"]


def _coach_session(user_token: str) -> CoachSession:
    """Return the coaching session of a browser, creating it if needed.

    Sessions are kept in least-recently-used order and the oldest ones are
    dropped once there are more than ``COACH_MAX_SESSIONS``.
    """
    sessions = current_app.extensions["coach_sessions"]
    with current_app.extensions["coach_sessions_lock"]:
        coach_session = sessions.get(user_token)
        if coach_session is not None:
            sessions.move_to_end(user_token)
            return coach_session
        scheduler = immediate_scheduler if current_app.config["COACH_IMMEDIATE"] else None
        coach_session = CoachSession(delay_ms=current_app.config["COACH_DELAY_MS"], scheduler=scheduler)
        sessions[user_token] = coach_session
        while len(sessions) > max(1, current_app.config["COACH_MAX_SESSIONS"]):
            sessions.popitem(last=False)
        return coach_session


def _existing_coach_session(user_token: str) -> Optional[CoachSession]:
    with current_app.extensions["coach_sessions_lock"]:
        return current_app.extensions["coach_sessions"].get(user_token)


def _drop_coach_session(user_token: str) -> None:
    with current_app.extensions["coach_sessions_lock"]:
        current_app.extensions["coach_sessions"].pop(user_token, None)


def _save(user_token: str, state: AppState) -> AppState:
    _store().save(user_token, state)
    coach_session = _existing_coach_session(user_token)
    if coach_session is not None:
        coach_session.invalidate()
    return state


def _scenario(state: AppState) -> ScenarioResult:
    return compute_scenario(state.loan_parameters(), state.extra_payments)


def _error_response(exc: MortgageError, language: str):
    return jsonify({"error": exc.localized(language), "code": exc.message_key}), 422


def _tip_from_payload(data: Mapping[str, Any]) -> PrepaymentTip:
    return PrepaymentTip(
        month=normalize_month(data.get("month")),
        due_date=parse_iso_date(str(data.get("dueDate") or "1970-01-01")),
        interest_paid=normalize_money(data.get("interestPaid")),
        interest_share_pct=normalize_money(data.get("interestSharePct")),
        suggested_extra=normalize_money(data.get("suggestedExtra")),
        estimated_interest_saved=normalize_money(data.get("estimatedInterestSaved")),
        extra_tier=ExtraTier(data.get("extraTier", ExtraTier.SMALL.value)),
        phase=InterestPhase(data.get("phase", InterestPhase.BALANCED.value)),
    )


def _register_routes(app: Flask) -> None:
    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/state")
    def get_state():
        user_token = _ensure_user_token()
        return jsonify(_store().load(user_token).to_dict())

    @app.put("/api/state")
    def put_state():
        user_token = _ensure_user_token()
        state = AppState.from_dict(request.get_json(silent=True))
        return jsonify(_save(user_token, state).to_dict())

    @app.delete("/api/state")
    def reset_state():
        user_token = _ensure_user_token()
        _store().delete(user_token)
        _drop_coach_session(user_token)
        return jsonify(AppState().to_dict())

    @app.post("/api/extras")
    def add_extra():
        user_token = _ensure_user_token()
        state = add_extra_payment(_store().load(user_token))
        return jsonify(_save(user_token, state).to_dict()), 201

    @app.delete("/api/extras/<int:extra_id>")
    def remove_extra(extra_id: int):
        user_token = _ensure_user_token()
        state = remove_extra_payment(_store().load(user_token), extra_id)
        return jsonify(_save(user_token, state).to_dict())

    @app.post("/api/tips/apply")
    def apply_coach_tip():
        user_token = _ensure_user_token()
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Expected a tip object"}), 400
        try:
            tip = _tip_from_payload(payload)
        except (TypeError, ValueError) as exc:
            return jsonify({"error": str(exc)}), 400
        state = apply_tip(_store().load(user_token), tip)
        return jsonify(_save(user_token, state).to_dict())

    @app.get("/api/schedule")
    def get_schedule():
        user_token = _ensure_user_token()
        state = _store().load(user_token)
        try:
            scenario = _scenario(state)
        except MortgageError as exc:
            return _error_response(exc, state.language)
        return jsonify(scenario_to_dict(scenario))

    @app.get("/api/chart")
    def get_chart():
        user_token = _ensure_user_token()
        state = _store().load(user_token)
        max_bars = request.args.get("max_bars", default=PAYMENT_MIX_MAX_BARS, type=int)
        try:
            scenario = _scenario(state)
        except MortgageError as exc:
            return _error_response(exc, state.language)
        params = state.loan_parameters()
        bars = aggregate_by_year(scenario.planned.rows, params.principal, params.first_payment_date, max_bars)
        return jsonify(bars_to_list(bars))

    @app.post("/api/coach")
    def request_coach():
        user_token = _ensure_user_token()
        state = _store().load(user_token)
        try:
            scenario: Optional[ScenarioResult] = _scenario(state)
        except MortgageError:
            scenario = None
        coach_session = _coach_session(user_token)
        token = coach_session.request(scenario, state.loan_parameters(), state.extra_payments, state.language)
        body = coach_response_to_dict(coach_session.snapshot())
        body["token"] = token
        return jsonify(body), 202

    @app.get("/api/coach")
    def get_coach():
        user_token = _ensure_user_token()
        coach_session = _existing_coach_session(user_token)
        if coach_session is None:
            body = coach_response_to_dict(CoachResponse())
            body["token"] = 0
        else:
            body = coach_response_to_dict(coach_session.snapshot())
            body["token"] = coach_session.token
        return jsonify(body)


if __name__ == "__main__":
    print("Starting Mortgage Coach API...")
    create_app().run(debug=True)
