"""Pieces, players, and the (tagged) position a piece can be in"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Self

from src.core.exceptions import GameStateError
from src.core.models import PieceModel, PlayerModel, PositionRecord
from src.core.shared_types import AIDifficulty, Color, PieceStatus
from src.ludo.board import (
    HOME_STRETCH_LENGTH,
    PIECES_PER_PLAYER,
    YARD_SLOTS,
    is_valid_home_offset,
    is_valid_track_offset,
    ring_cell,
)


# --- POSITION: one variant per domain ---
@dataclass(frozen=True)
class Yard:
    slot: int


@dataclass(frozen=True)
class Track:
    color: Color
    offset: int

    @property
    def cell(self) -> int:
        """Absolute ring cell, shared by all colors."""
        return ring_cell(self.color, self.offset)


@dataclass(frozen=True)
class HomeStretch:
    color: Color
    offset: int


@dataclass(frozen=True)
class Finished:
    pass


Position = Yard | Track | HomeStretch | Finished


def status_of(position: Position) -> PieceStatus:
    """The status of a piece follows from its position domain."""
    if isinstance(position, Yard):
        return PieceStatus.IN_YARD
    if isinstance(position, Finished):
        return PieceStatus.FINISHED
    return PieceStatus.ON_BOARD


def position_to_record(position: Position) -> PositionRecord:
    match position:
        case Yard(slot=slot):
            return {"kind": "yard", "slot": slot}
        case Track(color=color, offset=offset):
            return {"kind": "track", "color": color.value, "offset": offset}
        case HomeStretch(color=color, offset=offset):
            return {"kind": "home", "color": color.value, "offset": offset}
        case Finished():
            return {"kind": "finished"}
    raise GameStateError(f"Unknown position: {position!r}")


def position_from_record(record: PositionRecord) -> Position:
    """Parse a stored position, rejecting anything outside the board."""
    kind = record.get("kind")
    if kind == "yard":
        slot = int(record["slot"])
        if slot not in YARD_SLOTS:
            raise GameStateError(f"Invalid yard slot: {slot}")
        return Yard(slot)
    if kind == "track":
        offset = int(record["offset"])
        if not is_valid_track_offset(offset):
            raise GameStateError(f"Invalid track offset: {offset}")
        return Track(Color(record["color"]), offset)
    if kind == "home":
        offset = int(record["offset"])
        if not is_valid_home_offset(offset):
            raise GameStateError(
                f"Invalid home stretch offset: {offset}. Must be in 1..{HOME_STRETCH_LENGTH - 1}"
            )
        return HomeStretch(Color(record["color"]), offset)
    if kind == "finished":
        return Finished()
    raise GameStateError(f"Invalid position kind: {kind!r}")


@dataclass
class Piece:
    id: str
    index: int
    position: Position

    @property
    def status(self) -> PieceStatus:
        return status_of(self.position)

    @property
    def home_slot(self) -> Yard:
        """Every piece has its own slot in the yard, so a captured piece always returns to the same place."""
        return Yard(self.index)

    def send_home(self) -> None:
        self.position = self.home_slot

    @classmethod
    def from_model(cls, model: PieceModel, index: int) -> Self:
        position = position_from_record(model.position)
        if status_of(position) != PieceStatus(model.status):
            raise GameStateError(
                f"Piece {model.id} is stored as {model.status!r} but stands on {model.position}"
            )
        return cls(id=model.id, index=index, position=position)

    def to_model(self) -> PieceModel:
        return PieceModel(
            id=self.id,
            position=position_to_record(self.position),
            status=self.status.value,
        )


@dataclass
class Player:
    id: str
    color: Color
    pieces: list[Piece] = field(default_factory=list)
    is_ai: bool = False
    ai_difficulty: Optional[AIDifficulty] = None
    forfeited: bool = False

    @classmethod
    def new(
        cls,
        player_id: str,
        color: Color,
        is_ai: bool = False,
        ai_difficulty: Optional[AIDifficulty] = None,
    ) -> Self:
        """All four pieces start in the yard, each in its own slot."""
        pieces = [
            Piece(id=f"{color.value}_{index}", index=index, position=Yard(index))
            for index in range(PIECES_PER_PLAYER)
        ]
        return cls(player_id, color, pieces, is_ai, ai_difficulty)

    def piece(self, piece_id: str) -> Piece:
        for piece in self.pieces:
            if piece.id == piece_id:
                return piece
        raise GameStateError(f"Player {self.id} has no piece {piece_id!r}")

    def count(self, status: PieceStatus) -> int:
        return sum(1 for piece in self.pieces if piece.status == status)

    @classmethod
    def from_model(cls, model: PlayerModel) -> Self:
        if len(model.pieces) != PIECES_PER_PLAYER:
            raise GameStateError(
                f"Player {model.id} owns {len(model.pieces)} pieces instead of {PIECES_PER_PLAYER}"
            )
        return cls(
            id=model.id,
            color=Color(model.color),
            pieces=[Piece.from_model(p, index) for index, p in enumerate(model.pieces)],
            is_ai=model.is_ai,
            ai_difficulty=AIDifficulty(model.ai_difficulty) if model.ai_difficulty else None,
            forfeited=model.forfeited,
        )

    def to_model(self) -> PlayerModel:
        return PlayerModel(
            id=self.id,
            color=self.color.value,
            pieces=[piece.to_model() for piece in self.pieces],
            is_ai=self.is_ai,
            ai_difficulty=self.ai_difficulty.value if self.ai_difficulty else None,
            forfeited=self.forfeited,
        )
