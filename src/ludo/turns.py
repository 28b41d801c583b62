"""
Turn order and dice arbitration rules.

Pure functions over the players of a game; Game calls them to decide who plays next and whether the turn passes.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Optional, Self

from src.core.shared_types import TurnPhase
from src.ludo.board import DIE_FACES
from src.ludo.moves import Move, has_player_won
from src.ludo.pieces import Player

# Optional house rule: rolling a 6 for the third time in a row forfeits the turn.
MAX_CONSECUTIVE_SIXES = 3


@dataclass(frozen=True)
class TurnRules:
    three_sixes_forfeit: bool = False

    @classmethod
    def from_dict(cls, rules: Optional[dict[str, Any]]) -> Self:
        """Unknown keys are ignored so older game records still load."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (rules or {}).items() if key in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_valid_die(value: int) -> bool:
    return 1 <= value <= DIE_FACES


def phase_after_roll(legal_moves: list[Move]) -> TurnPhase:
    """No legal move for the rolled value means the turn is over right away."""
    return TurnPhase.AWAITING_MOVE if legal_moves else TurnPhase.TURN_COMPLETE


def grants_extra_turn(dice_value: int, move: Move) -> bool:
    """Rolling a 6 or bringing a piece home keeps the turn with the same player."""
    return dice_value == DIE_FACES or move.finishes


def count_sixes(consecutive_sixes: int, dice_value: int) -> int:
    return consecutive_sixes + 1 if dice_value == DIE_FACES else 0


def forfeits_turn(consecutive_sixes: int, rules: TurnRules) -> bool:
    return rules.three_sixes_forfeit and consecutive_sixes >= MAX_CONSECUTIVE_SIXES


def is_out(player: Player) -> bool:
    """Forfeited players and players with all pieces home take no more turns."""
    return player.forfeited or has_player_won(player)


def next_player_index(players: list[Player], current_index: int) -> int:
    """
    Left to right over the seats, wrapping around. Players who are out are skipped.
    If nobody else can play, the current player keeps the turn.
    """
    seats = len(players)
    for step in range(1, seats + 1):
        index = (current_index + step) % seats
        if not is_out(players[index]):
            return index
    return current_index
