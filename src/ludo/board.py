"""
Static geometry of the Ludo board.

The shared ring has 52 cells, indexed 0..51. Every color counts its own lap from its start cell, so a piece's track
offset 0 lands on a different ring cell for every color. After offset 50 (the cell right before the color's start cell)
a piece turns into its private home stretch. Offset 6 of the home stretch is the center: the piece is finished.

Pure data + pure functions, no state.
"""

from src.core.shared_types import Color

TRACK_LENGTH = 52
LAST_TRACK_OFFSET = 50  # a piece travels 51 cells of the ring (offsets 0..50) before it turns home
HOME_STRETCH_LENGTH = 6  # offsets 1..5 are cells, 6 is the finish
PIECES_PER_PLAYER = 4
DIE_FACES = 6
ENTRY_ROLL = 6  # die value needed to bring a piece out of the yard

# Ring cell where each color enters the track (track offset 0).
START_CELLS: dict[Color, int] = {
    Color.RED: 0,
    Color.GREEN: 13,
    Color.YELLOW: 26,
    Color.BLUE: 39,
}

# Ring cell right before each color turns into its home stretch.
HOME_ENTRANCES: dict[Color, int] = {
    color: (start + LAST_TRACK_OFFSET) % TRACK_LENGTH
    for color, start in START_CELLS.items()
}

# Start cells are safe, and so are the star cells 8 steps further along each color's lap.
STAR_CELLS: frozenset[int] = frozenset((start + 8) % TRACK_LENGTH for start in START_CELLS.values())
SAFE_CELLS: frozenset[int] = frozenset(START_CELLS.values()) | STAR_CELLS

YARD_SLOTS: tuple[int, ...] = tuple(range(PIECES_PER_PLAYER))


def ring_cell(color: Color, offset: int) -> int:
    """Absolute ring cell of a track offset counted from the color's start cell."""
    return (START_CELLS[color] + offset) % TRACK_LENGTH


def is_safe_cell(cell: int) -> bool:
    return cell in SAFE_CELLS


def is_valid_track_offset(offset: int) -> bool:
    return 0 <= offset <= LAST_TRACK_OFFSET


def is_valid_home_offset(offset: int) -> bool:
    """Cells of the home stretch a piece can stand on (the finish itself is not a cell)."""
    return 1 <= offset < HOME_STRETCH_LENGTH
