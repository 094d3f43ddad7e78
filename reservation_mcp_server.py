from __future__ import annotations

from functools import lru_cache
from typing import Any

from mcp.server.fastmcp import FastMCP

from room_reservation import ROOMS, ErrorCode, ReservationFilter, ReservationRequest, ReservationService, YamlReservationStore
from room_reservation.booking import ReservationInputError, find_room, parse_date
from room_reservation.config import get_settings

mcp = FastMCP(
    "Room Reservation MCP Server",
    instructions="Check meeting room availability and book rooms through the room_reservation project.",
    json_response=True,
)


@lru_cache
def get_service() -> ReservationService:
    return ReservationService(YamlReservationStore(get_settings().data_dir))


@mcp.resource("reservation://rooms")
async def list_rooms() -> list[dict[str, Any]]:
    """List the meeting rooms that can be reserved."""
    return [room.to_dict() for room in ROOMS]


@mcp.tool()
async def list_reservations(
    room_id: str | None = None,
    date: str | None = None,
    company: str | None = None,
) -> dict[str, Any]:
    """Return reservations sorted by date and start time, optionally filtered."""
    try:
        criteria = ReservationFilter(room_id=room_id, date=parse_date(date) if date else None, company=company)
    except ValueError as error:
        return {"success": False, "error": str(error)}

    outcome = await get_service().list(criteria)
    if not outcome.ok:
        return {"success": False, "error": outcome.message}
    return {"success": True, "data": [row.to_dict() for row in outcome.reservations]}


@mcp.tool()
async def check_availability(room_id: str, date: str, start_time: str, end_time: str) -> dict[str, Any]:
    """Report whether a room is free for the given HH:MM window."""
    room = find_room(room_id)
    if room is None:
        return {"success": False, "error": "Unknown room"}
    try:
        request = ReservationRequest.from_payload(
            {
                "roomId": room.id,
                "roomName": room.name,
                "date": date,
                "startTime": start_time,
                "endTime": end_time,
                "reservedBy": "-",
                "company": "-",
            }
        )
    except ReservationInputError as error:
        return {"success": False, "error": error.message}

    outcome = await get_service().check_availability(request)
    if outcome.ok:
        return {"success": True, "data": {"available": True, "conflicts": []}}
    if outcome.error is ErrorCode.CONFLICT:
        return {"success": True, "data": {"available": False, "conflicts": [row.to_dict() for row in outcome.reservations]}}
    return {"success": False, "error": outcome.message}


@mcp.tool()
async def create_reservation(
    room_id: str,
    date: str,
    start_time: str,
    end_time: str,
    reserved_by: str,
    company: str,
) -> dict[str, Any]:
    """Create a reservation when the slot is free."""
    room = find_room(room_id)
    if room is None:
        return {"success": False, "error": "Unknown room"}
    if company not in get_settings().company_names:
        return {"success": False, "error": "Unknown company"}
    try:
        request = ReservationRequest.from_payload(
            {
                "roomId": room.id,
                "roomName": room.name,
                "date": date,
                "startTime": start_time,
                "endTime": end_time,
                "reservedBy": reserved_by,
                "company": company,
            }
        )
    except ReservationInputError as error:
        return {"success": False, "error": error.message}

    outcome = await get_service().create(request)
    if not outcome.ok:
        return {"success": False, "error": outcome.message}
    return {"success": True, "data": outcome.reservation.to_dict(), "message": outcome.message}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
