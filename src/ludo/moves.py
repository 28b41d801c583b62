"""
Movement, blocking and capturing rules

Key idea: a move is fully determined by the piece and the die. The rules only compute where it would land and what it
would hit; turn order and phases are checked later by Game.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

from src.core.shared_types import Color, PieceStatus
from src.ludo.board import ENTRY_ROLL, HOME_STRETCH_LENGTH, LAST_TRACK_OFFSET, is_safe_cell
from src.ludo.pieces import Finished, HomeStretch, Piece, Player, Position, Track, Yard


class Board(Protocol):
    """Just the parts the movement rules need"""

    players: list[Player]


@dataclass(frozen=True)
class Move:
    """A candidate move: one piece, where it lands, and who gets sent back to the yard."""

    piece_id: str
    from_position: Position
    to_position: Position
    captured_piece_id: Optional[str] = None

    @property
    def finishes(self) -> bool:
        return isinstance(self.to_position, Finished)


# --- MOVEMENT RULES ---
def compute_next_position(piece: Piece, dice_value: int, color: Color) -> Position:
    """
    Where the piece would land with this die
    -----

    Returns the current position when the piece cannot move, so callers can test "position unchanged" for an
    illegal move.

    * Yard: only an entry roll brings the piece to the start cell (track offset 0).
    * Track: walk the color's own lap. Past the last track offset the remainder continues into the home stretch,
      an exact remainder of 6 finishes, and overshooting the finish leaves the piece where it is.
    * Home stretch: same overshoot rule.
    * Finished: never moves.
    """
    position = piece.position
    match position:
        case Yard():
            return Track(color, 0) if dice_value == ENTRY_ROLL else position
        case Track(offset=offset):
            new_offset = offset + dice_value
            if new_offset <= LAST_TRACK_OFFSET:
                return Track(color, new_offset)
            return _home_stretch_position(position, new_offset - LAST_TRACK_OFFSET, color)
        case HomeStretch(offset=offset):
            return _home_stretch_position(position, offset + dice_value, color)
    return position


def _home_stretch_position(current: Position, steps_into_home: int, color: Color) -> Position:
    if steps_into_home < HOME_STRETCH_LENGTH:
        return HomeStretch(color, steps_into_home)
    if steps_into_home == HOME_STRETCH_LENGTH:
        return Finished()
    return current


def is_blocked_by_own_piece(player: Player, piece: Piece, new_position: Position) -> bool:
    """Two pieces of the same color may not share a track cell or a home stretch cell."""
    for other in player.pieces:
        if other.id == piece.id or other.status == PieceStatus.FINISHED:
            continue
        if _same_cell(other.position, new_position):
            return True
    return False


def _same_cell(a: Position, b: Position) -> bool:
    if isinstance(a, Track) and isinstance(b, Track):
        return a.cell == b.cell
    if isinstance(a, HomeStretch) and isinstance(b, HomeStretch):
        return a.color == b.color and a.offset == b.offset
    return False


def is_legal_move(board: Board, player: Player, piece: Piece, new_position: Position) -> bool:
    """
    Board is passed along so every rule has the same signature, even if only the acting player's pieces can block.
    """
    if new_position == piece.position:
        return False
    return not is_blocked_by_own_piece(player, piece, new_position)


def detect_capture(board: Board, player: Player, target: Position) -> Optional[Piece]:
    """Opposing piece standing on the target ring cell, unless the cell is a safe spot."""
    if not isinstance(target, Track) or is_safe_cell(target.cell):
        return None
    for opponent in board.players:
        if opponent.id == player.id:
            continue
        for piece in opponent.pieces:
            if isinstance(piece.position, Track) and piece.position.cell == target.cell:
                return piece
    return None


def has_reached_home(position: Position) -> bool:
    return isinstance(position, Finished)


def has_player_won(player: Player) -> bool:
    return all(has_reached_home(piece.position) for piece in player.pieces)


def generate_moves(board: Board, player: Player, dice_value: int) -> list[Move]:
    """Every legal move of the player for this die, one per movable piece."""
    moves: list[Move] = []
    for piece in player.pieces:
        target = compute_next_position(piece, dice_value, player.color)
        if not is_legal_move(board, player, piece, target):
            continue
        captured = detect_capture(board, player, target)
        moves.append(
            Move(
                piece_id=piece.id,
                from_position=piece.position,
                to_position=target,
                captured_piece_id=captured.id if captured else None,
            )
        )
    return moves
