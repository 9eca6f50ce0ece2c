from __future__ import annotations

import pytest

from dominions_bot.models import Era
from dominions_bot.nations import find_nation, get_nation_desc, is_playable_nation, nations_for_era


def test_get_nation_desc():
    assert get_nation_desc(5) == ("Arcoscephale", Era.EARLY)
    assert get_nation_desc(3) == ("Rebels", None)


def test_get_nation_desc_unknown_id():
    with pytest.raises(KeyError):
        get_nation_desc(249)


def test_independent_slots_are_not_playable():
    assert not is_playable_nation(0)
    assert not is_playable_nation(4)
    assert is_playable_nation(5)
    assert not is_playable_nation(1000)


def test_nations_for_era_sorted_and_scoped():
    early = nations_for_era(Era.EARLY)
    names = [name for _, name in early]

    assert names == sorted(names)
    assert all(get_nation_desc(nation_id)[1] == Era.EARLY for nation_id, _ in early)
    assert (7, "Ulm") in early


@pytest.mark.parametrize(
    "name, era, expected",
    [
        ("Ulm", Era.EARLY, 7),
        ("ulm", Era.MIDDLE, 49),
        ("  ERMOR ", Era.EARLY, 6),
        ("pyth", Era.MIDDLE, 46),
        ("Man", Era.LATE, 83),
        ("lemu", None, 82),
    ],
)
def test_find_nation(name, era, expected):
    assert find_nation(name, era) == expected


def test_find_nation_exact_match_beats_prefix():
    # "Ur" is also a prefix of "Uruk"
    assert find_nation("ur") == 29


@pytest.mark.parametrize("name", ["", "   ", "Atlantiz", "Rebels"])
def test_find_nation_rejects_unknown(name):
    with pytest.raises(ValueError):
        find_nation(name)


def test_find_nation_rejects_ambiguous_prefix():
    with pytest.raises(ValueError, match="ambiguous"):
        find_nation("A", Era.EARLY)
