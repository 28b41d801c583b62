"""Unit tests for src/db/records.py"""

from typing import Optional

import pytest

from src.core.exceptions import RepositoryError
from src.core.models import (
    MatchModel,
    PrizeModel,
    RoomModel,
    TournamentModel,
    TransactionModel,
    UserStatsModel,
    WalletModel,
)
from src.db.memory_store import InMemoryRemoteStore
from src.db.records import BROADCASTS, ROOMS, Records
from src.db.repository import Record
from src.ludo.game import Game


def make_room(code: str = "ABC123") -> RoomModel:
    return RoomModel(
        room_code=code,
        game_id=f"game-{code}",
        host_id="alice",
        players=["alice", "bob"],
        status="waiting",
        max_players=4,
        settings={"is_private": False},
        ready=["bob"],
    )


# --- ROOMS ---
def test_room_roundtrip(records: Records) -> None:
    room = make_room()
    records.save_room(room)
    assert records.get_room("ABC123") == room
    assert records.room_exists("ABC123")
    assert not records.room_exists("XYZ789")


def test_list_and_delete_rooms(records: Records) -> None:
    room = make_room("ABC123")
    records.save_room(room)
    records.save_room(make_room("XYZ789"))
    assert sorted(room.room_code for room in records.list_rooms()) == ["ABC123", "XYZ789"]

    assert records.delete_room("ABC123") == room
    assert records.delete_room("ABC123") is None
    assert records.get_room("ABC123") is None


def test_unknown_fields_are_ignored(records: Records, store: InMemoryRemoteStore) -> None:
    """Documents written by a newer client can carry extra keys."""
    room = make_room()
    store.write(f"{ROOMS}ABC123", {**vars(room), "theme": "neon"})
    assert records.get_room("ABC123") == room


def test_malformed_record(records: Records, store: InMemoryRemoteStore) -> None:
    store.write("tournaments/t1", {"id": "t1", "bracket": [["not a match"]]})
    with pytest.raises(RepositoryError):
        records.get_tournament("t1")


def test_record_missing_required_field(records: Records, store: InMemoryRemoteStore) -> None:
    record = vars(make_room()).copy()
    del record["host_id"]
    store.write(f"{ROOMS}ABC123", record)
    with pytest.raises(RepositoryError):
        records.get_room("ABC123")


# --- GAMES ---
def test_game_roundtrip(records: Records) -> None:
    game = Game.new_game("g1", ["alice", "bob"], room_code="ABC123")
    game.roll_dice("alice", 6)
    game.make_move("alice", "red_2")
    model = game.to_model()

    records.save_game(model)
    stored = records.get_game("g1")
    assert stored == model
    assert Game.from_model(stored) == game

    assert records.delete_game("g1") == model
    assert records.get_game("g1") is None


# --- TOURNAMENTS ---
def test_tournament_roundtrip(records: Records) -> None:
    tournament = TournamentModel(
        id="t1",
        name="Sunday Cup",
        entry_fee=50,
        max_participants=8,
        creator_id="alice",
        status="started",
        participants=["alice", "bob", "carol"],
        bracket=[
            [MatchModel("alice", "bob", status="ready"), MatchModel("carol", None, "carol", status="completed")],
            [MatchModel(None, "carol")],
        ],
        prize_distribution=[PrizeModel(position=1, user_id=None, prize=94.5, percentage=70.0)],
    )
    records.save_tournament(tournament)
    assert records.get_tournament("t1") == tournament
    assert records.list_tournaments() == [tournament]
    assert records.get_tournament("t2") is None


# --- WALLETS ---
def test_missing_wallet_is_empty(records: Records) -> None:
    assert records.get_wallet("alice") == WalletModel(user_id="alice")


def test_wallet_roundtrip(records: Records) -> None:
    wallet = WalletModel(
        user_id="alice",
        balance=90.5,
        transactions=[
            TransactionModel(
                id="t1", user_id="alice", type="credit", amount=100, status="completed", description="Top up"
            ),
            TransactionModel(
                id="t2", user_id="alice", type="debit", amount=9.5, status="completed", description="Entry fee"
            ),
        ],
    )
    records.save_wallet(wallet)
    assert records.get_wallet("alice") == wallet


# --- STATISTICS ---
def test_user_stats_roundtrip(records: Records) -> None:
    assert records.get_user_stats("alice") == UserStatsModel(user_id="alice")

    stats = UserStatsModel(user_id="alice", games_played=3, games_won=2, total_earnings=126.0)
    records.save_user_stats(stats)
    records.save_user_stats(UserStatsModel(user_id="bob"))
    assert records.get_user_stats("alice") == stats
    assert sorted(s.user_id for s in records.list_user_stats()) == ["alice", "bob"]


# --- BROADCASTS ---
def test_broadcast_reaches_channel_subscribers(records: Records) -> None:
    seen: list[Optional[Record]] = []
    records.subscribe(BROADCASTS, "ABC123", seen.append)

    records.broadcast("ABC123", "player_joined", {"user_id": "bob"})
    records.broadcast("XYZ789", "player_joined", {"user_id": "carol"})

    assert len(seen) == 1
    assert seen[0]["type"] == "player_joined"
    assert seen[0]["data"] == {"user_id": "bob"}
    assert "timestamp" in seen[0]
