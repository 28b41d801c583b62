from dataclasses import asdict

import pytest

from src.api.models import (
    AddMoneyRequest,
    CreateRoomRequest,
    CreateTournamentRequest,
    JoinRoomRequest,
    ReadyRequest,
    RoomResponse,
    WithdrawRequest,
)
from src.core.exceptions import InvalidRequestError
from src.core.models import RoomModel
from src.core.shared_types import AIDifficulty, PaymentMethod


# -- Validation - CreateRoomRequest --
def test_create_room_defaults() -> None:
    """Only the host is required: a public four player room without house rules."""
    request = CreateRoomRequest(host_id="alice")
    assert request.max_players == 4
    assert not request.is_private
    assert not request.three_sixes_forfeit
    assert request.ai_players == []


def test_create_room_with_computer_players() -> None:
    request = CreateRoomRequest(host_id="alice", max_players=3, ai_players=["easy", "hard"])
    assert request.ai_players == [AIDifficulty.EASY, AIDifficulty.HARD]


@pytest.mark.parametrize("max_players", [1, 5])
def test_create_room_invalid_size(max_players: int) -> None:
    with pytest.raises(InvalidRequestError):
        CreateRoomRequest(host_id="alice", max_players=max_players)


def test_create_room_blank_host() -> None:
    with pytest.raises(InvalidRequestError):
        CreateRoomRequest(host_id="   ")


# -- Validation - room codes --
def test_room_code_is_normalized() -> None:
    """Codes are typed by hand: surrounding spaces and lower case are accepted."""
    request = JoinRoomRequest(room_code=" ab12cd ", user_id="bob")
    assert request.room_code == "AB12CD"


@pytest.mark.parametrize(
    "room_code",
    [
        "AB12C",  # too short
        "AB12CDE",  # too long
        "AB-12C",  # not alphanumeric
        "",
    ],
)
def test_invalid_room_code(room_code: str) -> None:
    with pytest.raises(InvalidRequestError):
        JoinRoomRequest(room_code=room_code, user_id="bob")


def test_ready_defaults_to_true() -> None:
    assert ReadyRequest(room_code="AB12CD", user_id="bob").ready


# -- Validation - CreateTournamentRequest --
def test_create_tournament() -> None:
    request = CreateTournamentRequest(
        name="  Sunday Cup ",
        entry_fee=50,
        max_participants=8,
        creator_id="alice",
        start_time="2026-11-01T18:00:00+00:00",
    )
    assert request.name == "Sunday Cup"
    assert request.start_time.isoformat() == "2026-11-01T18:00:00+00:00"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": " "},
        {"entry_fee": -1},
        {"max_participants": 1},
    ],
)
def test_create_tournament_invalid(overrides: dict) -> None:
    fields = {"name": "Cup", "entry_fee": 0, "max_participants": 4, "creator_id": "alice", **overrides}
    with pytest.raises(InvalidRequestError):
        CreateTournamentRequest(**fields)


# -- Validation - wallet --
@pytest.mark.parametrize("amount, valid", [(9.99, False), (10, True), (50_000, True), (50_000.01, False)])
def test_deposit_bounds(amount: float, valid: bool) -> None:
    if valid:
        request = AddMoneyRequest(user_id="alice", amount=amount)
        assert request.method == PaymentMethod.RAZORPAY
    else:
        with pytest.raises(InvalidRequestError):
            AddMoneyRequest(user_id="alice", amount=amount)


@pytest.mark.parametrize("amount, valid", [(49, False), (50, True), (10_000, True), (10_001, False)])
def test_withdrawal_bounds(amount: float, valid: bool) -> None:
    if valid:
        assert WithdrawRequest(user_id="alice", amount=amount, upi_id="alice@okbank").amount == amount
    else:
        with pytest.raises(InvalidRequestError):
            WithdrawRequest(user_id="alice", amount=amount, upi_id="alice@okbank")


@pytest.mark.parametrize("upi_id", ["alice", "alice@", "@bank", "alice@bank1", "a@b"])
def test_invalid_upi_id(upi_id: str) -> None:
    with pytest.raises(InvalidRequestError):
        WithdrawRequest(user_id="alice", amount=100, upi_id=upi_id)


# -- Responses --
def test_room_response_from_model() -> None:
    """Responses are built from the transport models; the derived player count is passed along."""
    room = RoomModel(
        room_code="AB12CD",
        game_id="g1",
        host_id="alice",
        players=["alice", "bob"],
        status="waiting",
        max_players=4,
    )
    response = RoomResponse(**asdict(room), current_players=room.current_players)
    assert response.current_players == 2
    assert response.player_mapping == {}
