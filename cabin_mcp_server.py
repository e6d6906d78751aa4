from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from cabin_reservations import CabinReservationService, ReservationYamlRepository, YamlUserDirectory
from cabin_reservations.calendar_stats import upcoming_reservations

mcp = FastMCP(
    "Cabin Reservation MCP Server",
    instructions="Expose cabin reservations and booking operations from the cabin_reservations project.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
SERVICE = CabinReservationService(ReservationYamlRepository(DATA_DIR), YamlUserDirectory(DATA_DIR))


@mcp.resource("reservation://upcoming")
async def list_upcoming() -> list[dict[str, Any]]:
    """List the next reservations starting today or later."""
    records = upcoming_reservations(SERVICE.list_reservations(), date.today())
    return [record.to_dict() for record in records]


@mcp.tool()
def list_reservations(status: str | None = None) -> list[dict[str, Any]]:
    """Return all reservations, optionally filtered by status (primary, backup, soft)."""
    records = SERVICE.list_reservations()
    filtered = [record for record in records if status is None or record.status.value == status]
    return [record.to_dict() for record in filtered]


@mcp.tool()
def create_reservation(
    owner_id: str,
    date_from: str,
    date_to: str,
    purpose: str,
    notes: str | None = None,
    soft: bool = False,
) -> dict[str, Any]:
    """Book the cabin for an inclusive YYYY-MM-DD range; overlapping requests become backups."""
    created = SERVICE.create_reservation(owner_id, date_from, date_to, purpose, notes=notes, soft=soft)
    return created.to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
