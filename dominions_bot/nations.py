"""Static catalog of Dominions 5 nations keyed by their in-game id."""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .models import Era

_NATIONS: Dict[int, Tuple[str, Optional[Era]]] = {
    # Reserved independent slots, present in every game
    0: ("Independents", None),
    1: ("Special Monsters", None),
    2: ("Horrors", None),
    3: ("Rebels", None),
    4: ("Bandits", None),
    # Early age
    5: ("Arcoscephale", Era.EARLY),
    6: ("Ermor", Era.EARLY),
    7: ("Ulm", Era.EARLY),
    8: ("Marverni", Era.EARLY),
    9: ("Sauromatia", Era.EARLY),
    10: ("T'ien Ch'i", Era.EARLY),
    11: ("Machaka", Era.EARLY),
    12: ("Mictlan", Era.EARLY),
    13: ("Abysia", Era.EARLY),
    14: ("Caelum", Era.EARLY),
    15: ("C'tis", Era.EARLY),
    16: ("Pangaea", Era.EARLY),
    17: ("Agartha", Era.EARLY),
    18: ("Tir na n'Og", Era.EARLY),
    19: ("Fomoria", Era.EARLY),
    20: ("Vanheim", Era.EARLY),
    21: ("Helheim", Era.EARLY),
    22: ("Niefelheim", Era.EARLY),
    24: ("Rus", Era.EARLY),
    25: ("Kailasa", Era.EARLY),
    26: ("Lanka", Era.EARLY),
    27: ("Yomi", Era.EARLY),
    28: ("Hinnom", Era.EARLY),
    29: ("Ur", Era.EARLY),
    30: ("Berytos", Era.EARLY),
    31: ("Xibalba", Era.EARLY),
    32: ("Mekone", Era.EARLY),
    33: ("Ubar", Era.EARLY),
    36: ("Atlantis", Era.EARLY),
    37: ("R'lyeh", Era.EARLY),
    38: ("Pelagia", Era.EARLY),
    39: ("Oceania", Era.EARLY),
    40: ("Therodos", Era.EARLY),
    # Middle age
    43: ("Arcoscephale", Era.MIDDLE),
    44: ("Ermor", Era.MIDDLE),
    45: ("Sceleria", Era.MIDDLE),
    46: ("Pythium", Era.MIDDLE),
    47: ("Man", Era.MIDDLE),
    48: ("Eriu", Era.MIDDLE),
    49: ("Ulm", Era.MIDDLE),
    50: ("Marignon", Era.MIDDLE),
    51: ("Mictlan", Era.MIDDLE),
    52: ("T'ien Ch'i", Era.MIDDLE),
    53: ("Machaka", Era.MIDDLE),
    54: ("Agartha", Era.MIDDLE),
    55: ("Abysia", Era.MIDDLE),
    56: ("Caelum", Era.MIDDLE),
    57: ("C'tis", Era.MIDDLE),
    58: ("Pangaea", Era.MIDDLE),
    59: ("Asphodel", Era.MIDDLE),
    60: ("Vanheim", Era.MIDDLE),
    61: ("Jotunheim", Era.MIDDLE),
    62: ("Vanarus", Era.MIDDLE),
    63: ("Bandar Log", Era.MIDDLE),
    64: ("Shinuyama", Era.MIDDLE),
    65: ("Ashdod", Era.MIDDLE),
    66: ("Uruk", Era.MIDDLE),
    67: ("Nazca", Era.MIDDLE),
    68: ("Xibalba", Era.MIDDLE),
    69: ("Phlegra", Era.MIDDLE),
    70: ("Phaeacia", Era.MIDDLE),
    71: ("Ind", Era.MIDDLE),
    72: ("Na'Ba", Era.MIDDLE),
    73: ("Atlantis", Era.MIDDLE),
    74: ("R'lyeh", Era.MIDDLE),
    75: ("Pelagia", Era.MIDDLE),
    76: ("Oceania", Era.MIDDLE),
    77: ("Ys", Era.MIDDLE),
    # Late age
    80: ("Arcoscephale", Era.LATE),
    81: ("Pythium", Era.LATE),
    82: ("Lemuria", Era.LATE),
    83: ("Man", Era.LATE),
    84: ("Ulm", Era.LATE),
    85: ("Marignon", Era.LATE),
    86: ("Mictlan", Era.LATE),
    87: ("T'ien Ch'i", Era.LATE),
    89: ("Jomon", Era.LATE),
    90: ("Agartha", Era.LATE),
    91: ("Abysia", Era.LATE),
    92: ("Caelum", Era.LATE),
    93: ("C'tis", Era.LATE),
    94: ("Pangaea", Era.LATE),
    95: ("Midgard", Era.LATE),
    96: ("Utgard", Era.LATE),
    97: ("Bogarus", Era.LATE),
    98: ("Patala", Era.LATE),
    99: ("Gath", Era.LATE),
    100: ("Ragha", Era.LATE),
    101: ("Xibalba", Era.LATE),
    102: ("Phlegra", Era.LATE),
    103: ("Vaettiheim", Era.LATE),
    106: ("Atlantis", Era.LATE),
    107: ("R'lyeh", Era.LATE),
    108: ("Erytheia", Era.LATE),
}


def get_nation_desc(nation_id: int) -> Tuple[str, Optional[Era]]:
    """Return ``(name, era)`` for a nation id; independents have no era.

    The table is fixed, so an unknown id is a programming error and surfaces
    as ``KeyError``.
    """

    try:
        return _NATIONS[nation_id]
    except KeyError:
        raise KeyError(f"Unknown nation id {nation_id}") from None


def is_playable_nation(nation_id: int) -> bool:
    return nation_id in _NATIONS and _NATIONS[nation_id][1] is not None


def nations_for_era(era: Era) -> List[Tuple[int, str]]:
    """All ``(id, name)`` pairs playable in ``era``, ordered by name."""

    entries = [(nation_id, name) for nation_id, (name, nation_era) in _NATIONS.items() if nation_era == era]
    return sorted(entries, key=lambda entry: entry[1])


def find_nation(name: str, era: Optional[Era] = None) -> int:
    """Resolve a case-insensitive name or unique prefix to a nation id.

    An exact name match wins over prefix matches. When ``era`` is omitted the
    name must still identify a single nation across all eras.
    """

    needle = name.strip().lower()
    if not needle:
        raise ValueError("Nation name must not be empty")
    candidates = [
        (nation_id, nation_name)
        for nation_id, (nation_name, nation_era) in _NATIONS.items()
        if nation_era is not None and (era is None or nation_era == era)
    ]
    exact = [nation_id for nation_id, nation_name in candidates if nation_name.lower() == needle]
    if len(exact) == 1:
        return exact[0]
    matches = exact or [
        nation_id for nation_id, nation_name in candidates if nation_name.lower().startswith(needle)
    ]
    if not matches:
        raise ValueError(f"No nation matches '{name}'")
    if len(matches) > 1:
        options = ", ".join(
            f"{_NATIONS[nation_id][0]} ({_NATIONS[nation_id][1].label})" for nation_id in sorted(matches)
        )
        raise ValueError(f"'{name}' is ambiguous: {options}")
    return matches[0]


__all__ = [
    "find_nation",
    "get_nation_desc",
    "is_playable_nation",
    "nations_for_era",
]
