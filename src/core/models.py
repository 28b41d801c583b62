"""
Boundary layer data model(s).

These objects can be used to communicate with the Services.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Services
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)

Everything in here is JSON-safe: plain strings, numbers, lists and dicts. A record in the remote store is simply
`dataclasses.asdict()` of one of these.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# Type aliases to make the models easier to read
UserId = str
ColorName = str
PositionRecord = dict[str, Any]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- GAME ---
@dataclass
class PieceModel:
    id: str
    position: PositionRecord
    status: str


@dataclass
class PlayerModel:
    id: UserId
    color: ColorName
    pieces: list[PieceModel]
    is_ai: bool = False
    ai_difficulty: Optional[str] = None
    forfeited: bool = False


@dataclass
class MoveRecord:
    """One applied move, as stored in the move history of a game."""

    player_id: UserId
    piece_id: str
    from_position: PositionRecord
    to_position: PositionRecord
    dice_value: int
    captured_piece_id: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class GameModel:
    """Transport-safe representation of a Ludo game used between Service, DB, and Game layers."""

    game_id: str
    players: list[PlayerModel]
    current_player_index: int
    dice_value: Optional[int]
    game_status: str
    winner: Optional[UserId]
    turn_phase: str
    consecutive_sixes: int = 0
    last_move: Optional[MoveRecord] = None
    move_history: list[MoveRecord] = field(default_factory=list)
    rules: dict[str, Any] = field(default_factory=dict)
    room_code: Optional[str] = None


# --- ROOM ---
@dataclass
class RoomModel:
    room_code: str
    game_id: str
    host_id: UserId
    players: list[UserId]
    status: str
    max_players: int
    settings: dict[str, Any] = field(default_factory=dict)
    ready: list[UserId] = field(default_factory=list)
    player_mapping: dict[UserId, ColorName] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def current_players(self) -> int:
        return len(self.players)


# --- TOURNAMENT ---
@dataclass
class MatchModel:
    player1: Optional[UserId] = None
    player2: Optional[UserId] = None
    winner: Optional[UserId] = None
    game_id: Optional[str] = None
    room_code: Optional[str] = None
    status: str = "pending"


@dataclass
class PrizeModel:
    position: int
    user_id: Optional[UserId]
    prize: float
    percentage: float


@dataclass
class TournamentModel:
    id: str
    name: str
    entry_fee: float
    max_participants: int
    creator_id: UserId
    status: str
    participants: list[UserId] = field(default_factory=list)
    bracket: list[list[MatchModel]] = field(default_factory=list)
    current_round: int = 0
    winner: Optional[UserId] = None
    prize_distribution: list[PrizeModel] = field(default_factory=list)
    start_time: Optional[str] = None
    reminder_id: Optional[str] = None
    cancel_reason: Optional[str] = None
    # every refund or prize owed has been paid
    settled: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def current_participants(self) -> int:
        return len(self.participants)


# --- WALLET ---
@dataclass
class TransactionModel:
    id: str
    user_id: UserId
    type: str
    amount: float
    status: str
    description: str
    method: Optional[str] = None
    reference: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class WalletModel:
    """A user's balance together with its (append-only) transaction log. Both live in one record."""

    user_id: UserId
    balance: float = 0
    transactions: list[TransactionModel] = field(default_factory=list)


# --- STATISTICS ---
@dataclass
class UserStatsModel:
    """Lifetime record of one player. Games against computer players count too; computer players get none."""

    user_id: UserId
    games_played: int = 0
    games_won: int = 0
    current_win_streak: int = 0
    longest_win_streak: int = 0
    total_captures: int = 0
    multiplayer_games_played: int = 0
    ai_games_played: int = 0
    tournament_games_played: int = 0
    tournament_games_won: int = 0
    hard_ai_wins: int = 0
    tournaments_won: int = 0
    total_earnings: float = 0
    last_game_at: Optional[str] = None
