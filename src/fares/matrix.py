"""Fixed tricycle fare matrix for Lopez, Quezon.

Every route starts at the Poblacion terminal. Fares are whole pesos; the
discounted column is the senior citizen / PWD fare.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class FareRoute:
    destination: str
    regular_fare: int
    discounted_fare: int
    route: str


LOPEZ_FARES: tuple[FareRoute, ...] = (
    # Route A1
    FareRoute("POBLACION", 13, 10, "A1"),
    # Route A2
    FareRoute("DEL PILAR", 13, 10, "A2"),
    FareRoute("MAGUISIAN", 13, 10, "A2"),
    FareRoute("CALANTIPAYAN", 14, 11, "A2"),
    FareRoute("PULONG MANGGA", 15, 12, "A2"),
    FareRoute("JONGO", 17, 14, "A2"),
    FareRoute("PANSOL", 16, 13, "A2"),
    FareRoute("SUGOD", 20, 16, "A2"),
    FareRoute("MAL-AY", 22, 18, "A2"),
    FareRoute("SAN RAFAEL", 50, 40, "A2"),
    FareRoute("SAN PEDRO SITE", 50, 40, "A2"),
    FareRoute("ILAYANG ILOG A", 60, 48, "A2"),
    FareRoute("ILAYANG ILOG B", 60, 48, "A2"),
    FareRoute("MABINI", 60, 48, "A2"),
    FareRoute("VILLANACAOB", 65, 52, "A2"),
    FareRoute("SANTA ELENA", 65, 52, "A2"),
    # Route A6
    FareRoute("BOCBOC (PUROK PANTAY)", 15, 12, "A6"),
    FareRoute("BOCBOC (PUROK BULIHAN 1 AND 2)", 13, 10, "A6"),
    FareRoute("BOCBOC (PUROK CENTRAL)", 15, 12, "A6"),
    FareRoute("BOCBOC (PUROK MANGGAHAN)", 15, 12, "A6"),
    FareRoute("VILLAHERMOSA (TULAY LAMPAS)", 13, 10, "A6"),
    FareRoute("VILLAHERMOSA", 16, 13, "A6"),
    FareRoute("SAN ANTONIO (KAWAYAN)", 18, 14, "A6"),
    FareRoute("ROSARIO", 18, 14, "A6"),
    FareRoute("CAMBOOT", 27, 22, "A6"),
    FareRoute("SILANG", 25, 20, "A6"),
    FareRoute("INALUSAN", 40, 32, "A6"),
    FareRoute("COGORIN IBABA CENTRO", 30, 24, "A6"),
    FareRoute("COGORIN IBABA (CROSSING BINAHIAN ABC)", 38, 30, "A6"),
    FareRoute("COGORIN IBABA (BOUNDARY STO. NIÑO IBABA)", 35, 28, "A6"),
    FareRoute("COGORIN ILAYA", 45, 36, "A6"),
    FareRoute("VILLAMONTE", 40, 32, "A6"),
    FareRoute("SAMAT", 45, 36, "A6"),
    FareRoute("BAYABAS", 55, 44, "A6"),
    FareRoute("BINAHIAN A", 55, 44, "A6"),
    FareRoute("BINAHIAN B", 65, 52, "A6"),
    FareRoute("BINAHIAN C", 70, 56, "A6"),
)

BARANGAY_ALIASES: dict[str, str] = {
    "POBLACION": "POBLACION",
    "TOWN PROPER": "POBLACION",
    "CENTRO": "POBLACION",
    "DEL PILAR": "DEL PILAR",
    "DELPILAR": "DEL PILAR",
    "BOCBOC": "BOCBOC (PUROK CENTRAL)",
    "BOCBOC PANTAY": "BOCBOC (PUROK PANTAY)",
    "BOCBOC BULIHAN": "BOCBOC (PUROK BULIHAN 1 AND 2)",
    "BOCBOC CENTRAL": "BOCBOC (PUROK CENTRAL)",
    "BOCBOC MANGGAHAN": "BOCBOC (PUROK MANGGAHAN)",
    "VILLAHERMOSA": "VILLAHERMOSA",
    "VILLAHERMOSA TULAY LAMPAS": "VILLAHERMOSA (TULAY LAMPAS)",
    "SAN ANTONIO": "SAN ANTONIO (KAWAYAN)",
    "KAWAYAN": "SAN ANTONIO (KAWAYAN)",
    "COGORIN": "COGORIN IBABA CENTRO",
    "COGORIN IBABA": "COGORIN IBABA CENTRO",
    "BINAHIAN": "BINAHIAN A",
}

_ORIGIN_PREFIX = re.compile(r"^POBLACION\s*-\s*", re.IGNORECASE)


def normalize_destination(name: str | None) -> str:
    """Upper-case, trim, drop the "POBLACION -" origin prefix and resolve aliases."""
    if not name:
        return ""
    normalized = _ORIGIN_PREFIX.sub("", name.upper().strip())
    return BARANGAY_ALIASES.get(normalized, normalized)


def find_route(destination: str | None) -> FareRoute | None:
    """Route for a destination: exact name first, then the first partial match.

    A partial match is a route name that contains, or is contained in, the
    normalized destination.
    """
    normalized = normalize_destination(destination)
    if not normalized:
        return None
    for route in LOPEZ_FARES:
        if route.destination == normalized:
            return route
    for route in LOPEZ_FARES:
        if normalized in route.destination or route.destination in normalized:
            return route
    return None


def search_destinations(term: str) -> list[FareRoute]:
    """Routes whose destination contains the (upper-cased) search term."""
    needle = term.upper().strip()
    return [route for route in LOPEZ_FARES if needle in route.destination]


def all_destinations() -> list[FareRoute]:
    return list(LOPEZ_FARES)
