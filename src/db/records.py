"""
Typed access to the remote store.

Maps the JSON documents of each namespace (rooms/, games/, tournaments/, users/, stats/, broadcasts/) from and to the
transport models in src/core/models.py.
"""

from dataclasses import MISSING, asdict, fields
from typing import Any, Optional

from src.core.exceptions import RepositoryError
from src.core.models import (
    GameModel,
    MatchModel,
    MoveRecord,
    PieceModel,
    PlayerModel,
    PrizeModel,
    RoomModel,
    TournamentModel,
    TransactionModel,
    UserId,
    UserStatsModel,
    WalletModel,
    utc_now_iso,
)
from src.db.repository import Record, RecordCallback, RemoteStore, Unsubscribe

ROOMS = "rooms/"
GAMES = "games/"
TOURNAMENTS = "tournaments/"
USERS = "users/"
STATS = "stats/"
BROADCASTS = "broadcasts/"


class Records:
    """Persistence layer orchestration"""

    def __init__(self, store: RemoteStore) -> None:
        self.store = store

    # --- ROOMS ---
    def get_room(self, room_code: str) -> RoomModel | None:
        record = self.store.read(f"{ROOMS}{room_code}")
        return self._to_room(record) if record is not None else None

    def save_room(self, room: RoomModel) -> None:
        self.store.write(f"{ROOMS}{room.room_code}", asdict(room))

    def delete_room(self, room_code: str) -> RoomModel | None:
        record = self.store.delete(f"{ROOMS}{room_code}")
        return self._to_room(record) if record is not None else None

    def list_rooms(self) -> list[RoomModel]:
        return [self._to_room(record) for record in self.store.list(ROOMS).values()]

    def room_exists(self, room_code: str) -> bool:
        return self.store.read(f"{ROOMS}{room_code}") is not None

    # --- GAMES ---
    def get_game(self, game_id: str) -> GameModel | None:
        record = self.store.read(f"{GAMES}{game_id}")
        return self._to_game(record) if record is not None else None

    def save_game(self, game: GameModel) -> None:
        self.store.write(f"{GAMES}{game.game_id}", asdict(game))

    def delete_game(self, game_id: str) -> GameModel | None:
        record = self.store.delete(f"{GAMES}{game_id}")
        return self._to_game(record) if record is not None else None

    # --- TOURNAMENTS ---
    def get_tournament(self, tournament_id: str) -> TournamentModel | None:
        record = self.store.read(f"{TOURNAMENTS}{tournament_id}")
        return self._to_tournament(record) if record is not None else None

    def save_tournament(self, tournament: TournamentModel) -> None:
        self.store.write(f"{TOURNAMENTS}{tournament.id}", asdict(tournament))

    def list_tournaments(self) -> list[TournamentModel]:
        return [self._to_tournament(record) for record in self.store.list(TOURNAMENTS).values()]

    # --- WALLETS ---
    def get_wallet(self, user_id: UserId) -> WalletModel:
        """A user without a record simply has an empty wallet."""
        record = self.store.read(f"{USERS}{user_id}")
        if record is None:
            return WalletModel(user_id=user_id)
        return self._to_wallet(record)

    def save_wallet(self, wallet: WalletModel) -> None:
        self.store.write(f"{USERS}{wallet.user_id}", asdict(wallet))

    # --- STATISTICS ---
    def get_user_stats(self, user_id: UserId) -> UserStatsModel:
        """A user who never finished a game has all counters at zero."""
        record = self.store.read(f"{STATS}{user_id}")
        if record is None:
            return UserStatsModel(user_id=user_id)
        return UserStatsModel(**_known_fields(UserStatsModel, record))

    def save_user_stats(self, stats: UserStatsModel) -> None:
        self.store.write(f"{STATS}{stats.user_id}", asdict(stats))

    def list_user_stats(self) -> list[UserStatsModel]:
        return [UserStatsModel(**_known_fields(UserStatsModel, record)) for record in self.store.list(STATS).values()]

    # --- BROADCASTS ---
    def broadcast(self, channel: str, event_type: str, payload: Optional[dict[str, Any]] = None) -> None:
        event = {"type": event_type, "data": payload or {}, "timestamp": utc_now_iso()}
        self.store.write(f"{BROADCASTS}{channel}", event)

    def subscribe(self, namespace: str, key: str, callback: RecordCallback) -> Unsubscribe:
        return self.store.subscribe(f"{namespace}{key}", callback)

    # --- MAPPING ---
    def _to_room(self, record: Record) -> RoomModel:
        return RoomModel(**_known_fields(RoomModel, record))

    def _to_game(self, record: Record) -> GameModel:
        """Convert a stored document to data transfer model."""
        data = _known_fields(GameModel, record)
        data["players"] = [self._to_player(player) for player in record.get("players", [])]
        data["last_move"] = _to_move(record["last_move"]) if record.get("last_move") else None
        data["move_history"] = [_to_move(move) for move in record.get("move_history", [])]
        return GameModel(**data)

    def _to_player(self, record: Record) -> PlayerModel:
        data = _known_fields(PlayerModel, record)
        data["pieces"] = [PieceModel(**_known_fields(PieceModel, piece)) for piece in record.get("pieces", [])]
        return PlayerModel(**data)

    def _to_tournament(self, record: Record) -> TournamentModel:
        data = _known_fields(TournamentModel, record)
        data["bracket"] = [
            [MatchModel(**_known_fields(MatchModel, match)) for match in matches]
            for matches in record.get("bracket", [])
        ]
        data["prize_distribution"] = [
            PrizeModel(**_known_fields(PrizeModel, prize)) for prize in record.get("prize_distribution", [])
        ]
        return TournamentModel(**data)

    def _to_wallet(self, record: Record) -> WalletModel:
        data = _known_fields(WalletModel, record)
        data["transactions"] = [
            TransactionModel(**_known_fields(TransactionModel, txn)) for txn in record.get("transactions", [])
        ]
        return WalletModel(**data)


def _to_move(record: Record) -> MoveRecord:
    return MoveRecord(**_known_fields(MoveRecord, record))


def _known_fields(model: type, record: Record) -> dict[str, Any]:
    """Drop keys the model does not know (ex. written by a newer client)."""
    if not isinstance(record, dict):
        raise RepositoryError(f"Malformed {model.__name__} record: {record!r}")
    missing = [
        f.name for f in fields(model) if f.default is MISSING and f.default_factory is MISSING and f.name not in record
    ]
    if missing:
        raise RepositoryError(f"Malformed {model.__name__} record, missing {missing}")
    names = {f.name for f in fields(model)}
    return {key: value for key, value in record.items() if key in names}
