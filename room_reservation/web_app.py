from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable
import logging
import secrets

from flask import Flask, jsonify, request, session

from .auth import AdminSession, SessionGuard
from .booking import (
    ROOMS,
    ErrorCode,
    ReservationFilter,
    ReservationInputError,
    ReservationPatch,
    ReservationRequest,
    find_room,
    parse_date,
)
from .config import Settings, get_settings
from .schedule import CalendarView, generate_slots, week_dates, week_start
from .service import ReservationOutcome, ReservationService
from .store import ReservationStore
from .yaml_store import YamlReservationStore

SESSION_KEY = "admin_session"

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: Settings | None = None,
    store: ReservationStore | None = None,
) -> Flask:
    settings = settings or get_settings()
    clock: Callable[[], datetime] = now_provider or datetime.now

    app = Flask(__name__)
    if settings.secret_key is not None:
        app.secret_key = settings.secret_key.get_secret_value()
    else:
        logger.warning("No secret key configured; admin sessions will not survive a restart")
        app.secret_key = secrets.token_hex(32)
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Strict",
        SESSION_COOKIE_SECURE=settings.cookie_secure,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=settings.session_hours),
    )

    repository = store or YamlReservationStore(data_dir if data_dir is not None else settings.data_dir)
    service = ReservationService(repository, clock=clock)
    admin_password = settings.admin_password.get_secret_value() if settings.admin_password else None
    guard = SessionGuard(admin_password, lifetime=timedelta(hours=settings.session_hours), clock=clock)
    companies = settings.company_names

    app.extensions["reservation_service"] = service

    def _success(data: Any = None, message: str | None = None, status: int = 200) -> Any:
        payload: dict[str, Any] = {"success": True}
        if data is not None:
            payload["data"] = data
        if message:
            payload["message"] = message
        return jsonify(payload), status

    def _failure(error: str, status: int) -> Any:
        return jsonify({"success": False, "error": error}), status

    def _outcome_failure(outcome: ReservationOutcome) -> Any:
        error = outcome.error or ErrorCode.STORE_UNAVAILABLE
        return _failure(outcome.message, error.http_status)

    def _require_admin() -> Any | None:
        problem = guard.check(AdminSession.from_dict(session.get(SESSION_KEY)))
        if problem is None:
            return None
        if problem is ErrorCode.SESSION_EXPIRED:
            session.pop(SESSION_KEY, None)
            return _failure("Session expired", problem.http_status)
        return _failure("Unauthorized", problem.http_status)

    def _unknown_company(company: str | None) -> bool:
        return company is not None and company not in companies

    def _json_object() -> dict[str, Any] | None:
        payload = request.get_json(silent=True)
        if payload is None:
            return {}
        return payload if isinstance(payload, dict) else None

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/rooms")
    def get_rooms() -> Any:
        return _success({"rooms": [room.to_dict() for room in ROOMS], "companies": companies})

    @app.get("/api/reservations")
    async def list_reservations() -> Any:
        try:
            criteria = ReservationFilter(
                room_id=request.args.get("roomId") or None,
                date=_optional_date(request.args.get("date")),
                company=request.args.get("company") or None,
                start_date=_optional_date(request.args.get("startDate")),
                end_date=_optional_date(request.args.get("endDate")),
            )
        except ValueError:
            return _failure("Invalid date format", 400)

        outcome = await service.list(criteria)
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success([row.to_dict() for row in outcome.reservations])

    @app.post("/api/reservations")
    async def create_reservation() -> Any:
        payload = _json_object()
        if payload is None:
            return _failure("Invalid request body", 400)
        try:
            reservation_request = ReservationRequest.from_payload(payload)
        except ReservationInputError as error:
            return _failure(error.message, error.code.http_status)

        room = find_room(reservation_request.room_id)
        if room is None:
            return _failure("Unknown room", 400)
        reservation_request = replace(reservation_request, room_name=room.name)
        if _unknown_company(reservation_request.company):
            return _failure("Unknown company", 400)

        outcome = await service.create(reservation_request)
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success(outcome.reservation.to_dict(), outcome.message, 201)

    @app.post("/api/availability")
    async def check_availability() -> Any:
        payload = _json_object()
        if payload is None:
            return _failure("Invalid request body", 400)
        room = find_room(str(payload.get("roomId") or "").strip())
        if room is None:
            return _failure("Unknown room", 400)
        try:
            # Only the room, date and times take part in the check.
            reservation_request = ReservationRequest.from_payload(
                {"reservedBy": "-", "company": "-", **payload, "roomName": room.name}
            )
        except ReservationInputError as error:
            return _failure(error.message, error.code.http_status)

        exclude_id = str(payload.get("excludeId") or "").strip() or None
        outcome = await service.check_availability(reservation_request, exclude_id=exclude_id)
        if outcome.error is ErrorCode.CONFLICT:
            return _success(
                {"available": False, "conflicts": [row.to_dict() for row in outcome.reservations]},
                outcome.message,
            )
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success({"available": True, "conflicts": []}, outcome.message)

    @app.get("/api/reservations/<reservation_id>")
    async def get_reservation(reservation_id: str) -> Any:
        outcome = await service.get(reservation_id)
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success(outcome.reservation.to_dict())

    @app.put("/api/reservations/<reservation_id>")
    async def update_reservation(reservation_id: str) -> Any:
        denied = _require_admin()
        if denied is not None:
            return denied

        payload = _json_object()
        if payload is None:
            return _failure("Invalid request body", 400)
        try:
            patch = ReservationPatch.from_payload(payload)
        except ReservationInputError as error:
            return _failure(error.message, error.code.http_status)
        if patch.is_empty:
            return _failure("No fields to update", 400)

        if patch.room_id is not None:
            room = find_room(patch.room_id)
            if room is None:
                return _failure("Unknown room", 400)
            if patch.room_name is None:
                patch = replace(patch, room_name=room.name)
        if _unknown_company(patch.company):
            return _failure("Unknown company", 400)

        outcome = await service.update(reservation_id, patch)
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success(outcome.reservation.to_dict(), outcome.message)

    @app.delete("/api/reservations/<reservation_id>")
    async def delete_reservation(reservation_id: str) -> Any:
        denied = _require_admin()
        if denied is not None:
            return denied

        outcome = await service.delete(reservation_id)
        if not outcome.ok:
            return _outcome_failure(outcome)
        return _success(message=outcome.message)

    @app.get("/api/calendar")
    async def get_calendar() -> Any:
        try:
            requested = _optional_date(request.args.get("week"))
        except ValueError:
            return _failure("Invalid date format", 400)

        start = week_start(requested or clock().date())
        dates = week_dates(start)
        slots = generate_slots()
        view = await service.calendar(dates[0], dates[-1], ROOMS, slots, holiday_country=settings.holiday_country)
        if not isinstance(view, CalendarView):
            return _outcome_failure(view)

        return _success(
            {
                "weekStart": start.isoformat(),
                "dates": [day.isoformat() for day in dates],
                "timeSlots": slots,
                "rooms": [room.to_dict() for room in ROOMS],
                **view.to_dict(),
            }
        )

    @app.post("/api/admin/login")
    def admin_login() -> Any:
        payload = _json_object()
        if payload is None:
            return _failure("Invalid request body", 400)
        password = str(payload.get("password") or "")
        if not password:
            return _failure("Password is required", 400)
        if not guard.verify_password(password):
            return _failure("Invalid password", 401)

        admin_session = guard.create_session()
        session.permanent = True
        session[SESSION_KEY] = admin_session.to_dict()
        return _success(admin_session.to_dict(), "Logged in")

    @app.post("/api/admin/logout")
    def admin_logout() -> Any:
        session.pop(SESSION_KEY, None)
        return _success(message="Logged out")

    @app.get("/api/admin/session")
    def admin_session_state() -> Any:
        current = AdminSession.from_dict(session.get(SESSION_KEY))
        problem = guard.check(current)
        return _success(
            {
                "isAuthenticated": problem is None,
                "expiresAt": current.expires_at.isoformat(timespec="seconds") if problem is None else None,
            }
        )

    return app


def _optional_date(value: str | None) -> date | None:
    if value is None or not value.strip():
        return None
    return parse_date(value)


if __name__ == "__main__":
    configure_logging()
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
