"""Unit tests for src/ludo/moves.py"""

from dataclasses import dataclass, field

import pytest

from src.core.shared_types import Color
from src.ludo.moves import (
    Move,
    compute_next_position,
    detect_capture,
    generate_moves,
    has_player_won,
    has_reached_home,
    is_legal_move,
)
from src.ludo.pieces import Finished, HomeStretch, Piece, Player, Position, Track, Yard


@dataclass
class TableTop:
    """Only the players, which is all the movement rules look at."""

    players: list[Player] = field(default_factory=list)


@pytest.fixture
def red() -> Player:
    return Player.new("alice", Color.RED)


@pytest.fixture
def green() -> Player:
    return Player.new("bob", Color.GREEN)


@pytest.fixture
def table(red: Player, green: Player) -> TableTop:
    return TableTop([red, green])


def piece_at(position: Position, index: int = 0, color: Color = Color.RED) -> Piece:
    return Piece(id=f"{color}_{index}", index=index, position=position)


# --- NEXT POSITION ---
@pytest.mark.parametrize(
    "start, die, expected",
    [
        (Yard(1), 6, Track(Color.RED, 0)),  # entry roll
        (Yard(1), 5, Yard(1)),  # anything else: stays in the yard
        (Track(Color.RED, 10), 4, Track(Color.RED, 14)),
        (Track(Color.RED, 48), 2, Track(Color.RED, 50)),  # last cell of the lap
        (Track(Color.RED, 48), 4, HomeStretch(Color.RED, 2)),  # turns into the home stretch
        (Track(Color.RED, 47), 6, HomeStretch(Color.RED, 3)),
        (Track(Color.RED, 50), 6, Finished()),  # exact roll into the center
        (HomeStretch(Color.RED, 3), 2, HomeStretch(Color.RED, 5)),
        (HomeStretch(Color.RED, 3), 3, Finished()),
        (HomeStretch(Color.RED, 3), 4, HomeStretch(Color.RED, 3)),  # overshoot: no move
        (Finished(), 6, Finished()),
    ],
)
def test_compute_next_position(start: Position, die: int, expected: Position) -> None:
    assert compute_next_position(piece_at(start), die, Color.RED) == expected


def test_piece_never_enters_another_colors_home() -> None:
    """A green piece passing red's home entrance just keeps walking the ring."""
    piece = piece_at(Track(Color.GREEN, 36), color=Color.GREEN)  # ring cell 49
    assert compute_next_position(piece, 6, Color.GREEN) == Track(Color.GREEN, 42)


# --- LEGALITY ---
def test_unchanged_position_is_illegal(table: TableTop, red: Player) -> None:
    piece = red.pieces[0]
    assert not is_legal_move(table, red, piece, piece.position)


def test_own_piece_blocks_track_cell(table: TableTop, red: Player) -> None:
    red.pieces[0].position = Track(Color.RED, 10)
    red.pieces[1].position = Track(Color.RED, 14)
    target = compute_next_position(red.pieces[0], 4, Color.RED)
    assert not is_legal_move(table, red, red.pieces[0], target)


def test_own_piece_blocks_home_stretch_cell(table: TableTop, red: Player) -> None:
    red.pieces[0].position = HomeStretch(Color.RED, 1)
    red.pieces[1].position = HomeStretch(Color.RED, 4)
    assert not is_legal_move(table, red, red.pieces[0], HomeStretch(Color.RED, 4))
    assert is_legal_move(table, red, red.pieces[0], HomeStretch(Color.RED, 3))


def test_finished_pieces_do_not_block(table: TableTop, red: Player) -> None:
    """Any number of pieces can reach the center."""
    red.pieces[0].position = Finished()
    red.pieces[1].position = HomeStretch(Color.RED, 4)
    assert is_legal_move(table, red, red.pieces[1], Finished())


def test_opponent_does_not_block(table: TableTop, red: Player, green: Player) -> None:
    red.pieces[0].position = Track(Color.RED, 10)
    green.pieces[0].position = Track(Color.GREEN, 50)  # ring cell 11
    assert is_legal_move(table, red, red.pieces[0], Track(Color.RED, 11))


# --- CAPTURES ---
def test_capture_on_plain_cell(table: TableTop, red: Player, green: Player) -> None:
    green.pieces[2].position = Track(Color.GREEN, 50)  # ring cell 11
    captured = detect_capture(table, red, Track(Color.RED, 11))
    assert captured is green.pieces[2]


@pytest.mark.parametrize(
    "green_offset, red_target",
    [
        (8, 21),  # star cell
        (0, 13),  # green's own start cell
    ],
)
def test_no_capture_on_safe_cells(
    table: TableTop, red: Player, green: Player, green_offset: int, red_target: int
) -> None:
    green.pieces[0].position = Track(Color.GREEN, green_offset)
    assert detect_capture(table, red, Track(Color.RED, red_target)) is None


def test_no_capture_in_home_stretch(table: TableTop, red: Player, green: Player) -> None:
    """Home stretches are private: there is nobody else to capture."""
    green.pieces[0].position = HomeStretch(Color.GREEN, 2)
    assert detect_capture(table, red, HomeStretch(Color.RED, 2)) is None


def test_own_pieces_are_never_captured(table: TableTop, red: Player) -> None:
    red.pieces[1].position = Track(Color.RED, 11)
    assert detect_capture(table, red, Track(Color.RED, 11)) is None


# --- MOVE GENERATION ---
def test_only_entry_roll_moves_pieces_out_of_the_yard(table: TableTop, red: Player) -> None:
    assert generate_moves(table, red, 5) == []
    moves = generate_moves(table, red, 6)
    assert [move.piece_id for move in moves] == ["red_0", "red_1", "red_2", "red_3"]
    assert all(move.to_position == Track(Color.RED, 0) for move in moves)


def test_generated_moves_carry_captures(table: TableTop, red: Player, green: Player) -> None:
    red.pieces[0].position = Track(Color.RED, 10)
    green.pieces[0].position = Track(Color.GREEN, 50)
    assert generate_moves(table, red, 1) == [
        Move(
            piece_id="red_0",
            from_position=Track(Color.RED, 10),
            to_position=Track(Color.RED, 11),
            captured_piece_id="green_0",
        )
    ]


# --- HOME ---
def test_has_reached_home() -> None:
    assert has_reached_home(Finished())
    assert not has_reached_home(HomeStretch(Color.RED, 5))


def test_has_player_won(red: Player) -> None:
    for piece in red.pieces[:3]:
        piece.position = Finished()
    assert not has_player_won(red)
    red.pieces[3].position = Finished()
    assert has_player_won(red)
