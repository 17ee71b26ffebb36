import pytest

from cabinet.registry import ExtendedData, Machine, describe_players, display_year, normalize_name


@pytest.mark.unit
@pytest.mark.parametrize(
    "description, expected",
    [
        ("Pac-Man (Midway)", "Pac-Man"),
        ("puck man (Japan set 1)", "Puck Man"),
        ("Street Fighter II: the world warrior (World 910522)", "Street Fighter II: The World Warrior"),
        ("Who Dunit? (version 1.2)", "Who Dunit"),
        ("Dungeons &amp; Dragons", "Dungeons & Dragons"),
        (None, None),
    ],
)
def test_normalize_name(description, expected):
    assert normalize_name(description) == expected


@pytest.mark.unit
def test_describe_players_substitutes_known_modes():
    assert describe_players(("1P",)) == "Single-player game"
    assert describe_players(("4P alt", "2P sim")) == (
        "Alternate four-player mode, Simultaneous two-player mode"
    )
    assert describe_players(("Device",)) == "Non-playable device"
    assert describe_players(("7P pass",)) == "7P pass"
    assert describe_players(()) is None
    assert describe_players(None) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "year, expected",
    [("1980", "1980"), ("198?", "Unknown"), ("19??", "Unknown"), ("", "Unknown"), (None, None)],
)
def test_display_year(year, expected):
    assert display_year(year) == expected


@pytest.mark.unit
def test_extended_data_from_machine():
    parent = Machine(name="puckman", description="Puck Man (Japan set 1)", year="1980", player_modes=("2P alt",))
    clone = Machine(name="pacman", clone_of="puckman")
    rom_sharer = Machine(name="neocart", rom_of="neogeo")

    assert ExtendedData.from_machine(parent) == ExtendedData(
        name="Puck Man", players="Alternate two-player mode", is_parent=True, year="1980"
    )
    assert ExtendedData.from_machine(clone).is_parent is False
    assert ExtendedData.from_machine(rom_sharer).is_parent is False
    assert ExtendedData.from_machine(clone).name is None
