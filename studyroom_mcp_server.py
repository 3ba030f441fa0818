from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from studyroom_booking import BookingService, BookingSettings, ReservationYamlRepository, RoomYamlCatalog

mcp = FastMCP(
    "Study Room Booking MCP Server",
    instructions="Book shared study rooms and inspect or cancel existing reservations.",
    json_response=True,
)

SETTINGS = BookingSettings.from_env()
ROOMS = RoomYamlCatalog(SETTINGS.data_dir)
SERVICE = BookingService(ReservationYamlRepository(SETTINGS.data_dir, SETTINGS), ROOMS, SETTINGS)


@mcp.resource("studyroom://rooms")
async def list_rooms() -> list[dict[str, object]]:
    """List bookable study rooms."""
    return [room.to_dict() for room in ROOMS.list_rooms()]


@mcp.tool()
def list_room_reservations(room_id: str) -> list[dict[str, str]]:
    """Return every reservation of a room ordered by start time."""
    return [record.to_dict() for record in SERVICE.reservations_by_room(room_id)]


@mcp.tool()
def list_user_reservations(username: str) -> list[dict[str, str]]:
    """Return every reservation made by a user ordered by start time."""
    return [record.to_dict() for record in SERVICE.reservations_by_user(username)]


@mcp.tool()
def book_room(room_id: str, username: str, start_iso: str, end_iso: str) -> dict[str, object]:
    """Reserve a room for [start, end) using ISO timestamps."""
    booked = SERVICE.create_reservation(
        room_id=room_id,
        username=username,
        start=SETTINGS.parse_instant(start_iso),
        end=SETTINGS.parse_instant(end_iso),
        now=SETTINGS.now(),
    )
    return booked.to_dict()


@mcp.tool()
def cancel_booking(reservation_id: str) -> dict[str, str]:
    """Cancel a confirmed reservation that has not ended yet."""
    return SERVICE.cancel_reservation(reservation_id, now=SETTINGS.now()).to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
