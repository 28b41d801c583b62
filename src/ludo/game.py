"""
The Game class will be the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating all the business logic required to play a turn of Ludo -->
passes this information to the service layer, which can then pass it onwards to the API layer.
"""

from dataclasses import dataclass, field
from typing import Optional, Self

from src.core.exceptions import (
    GameNotActiveError,
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
)
from src.core.models import GameModel, MoveRecord, UserId
from src.core.shared_types import COLOR_ORDER, AIDifficulty, GameStatus, TurnPhase
from src.ludo.moves import Move, generate_moves, has_player_won
from src.ludo.pieces import Finished, Player, Yard, position_to_record
from src.ludo.turns import (
    TurnRules,
    count_sixes,
    forfeits_turn,
    grants_extra_turn,
    is_valid_die,
    next_player_index,
    phase_after_roll,
)

MIN_PLAYERS = 2
MAX_PLAYERS = len(COLOR_ORDER)


@dataclass
class Game:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    game_id: str
    players: list[Player]
    current_player_index: int = 0
    dice_value: Optional[int] = None
    status: GameStatus = GameStatus.PLAYING
    winner: Optional[UserId] = None
    turn_phase: TurnPhase = TurnPhase.AWAITING_ROLL
    consecutive_sixes: int = 0
    last_move: Optional[MoveRecord] = None
    move_history: list[MoveRecord] = field(default_factory=list)
    rules: TurnRules = field(default_factory=TurnRules)
    room_code: Optional[str] = None

    @classmethod
    def new_game(
        cls,
        game_id: str,
        player_ids: list[UserId],
        ai_players: Optional[dict[UserId, AIDifficulty]] = None,
        rules: Optional[TurnRules] = None,
        room_code: Optional[str] = None,
    ) -> Self:
        """Seat the players in the given (join) order. Colors follow the seats, red first."""
        if not MIN_PLAYERS <= len(player_ids) <= MAX_PLAYERS:
            raise GameStateError(
                f"A game needs {MIN_PLAYERS} to {MAX_PLAYERS} players, got {len(player_ids)}"
            )
        if len(set(player_ids)) != len(player_ids):
            raise GameStateError(f"Players must be unique: {player_ids}")

        ai_players = ai_players or {}
        players = [
            Player.new(
                player_id,
                color,
                is_ai=player_id in ai_players,
                ai_difficulty=ai_players.get(player_id),
            )
            for player_id, color in zip(player_ids, COLOR_ORDER)
        ]
        return cls(game_id=game_id, players=players, rules=rules or TurnRules(), room_code=room_code)

    @classmethod
    def from_model(cls, model: GameModel) -> Self:
        """Define how to construct a Game from the information the Service layer actually has"""

        # Validation
        if model.game_status not in GameStatus.__members__.values():
            raise GameStateError(
                f"Invalid status code: {model.game_status!r}. \nPick one from {','.join(GameStatus)}"
            )
        if model.turn_phase not in TurnPhase.__members__.values():
            raise GameStateError(f"Invalid turn phase: {model.turn_phase!r}")
        if not 0 <= model.current_player_index < len(model.players):
            raise GameStateError(f"Invalid current player index: {model.current_player_index}")

        # create the Game
        return cls(
            game_id=model.game_id,
            players=[Player.from_model(player) for player in model.players],
            current_player_index=model.current_player_index,
            dice_value=model.dice_value,
            status=GameStatus(model.game_status),
            winner=model.winner,
            turn_phase=TurnPhase(model.turn_phase),
            consecutive_sixes=model.consecutive_sixes,
            last_move=model.last_move,
            move_history=list(model.move_history),
            rules=TurnRules.from_dict(model.rules),
            room_code=model.room_code,
        )

    def to_model(self) -> GameModel:
        """Encode back into a format the Service layer uses"""

        return GameModel(
            game_id=self.game_id,
            players=[player.to_model() for player in self.players],
            current_player_index=self.current_player_index,
            dice_value=self.dice_value,
            game_status=self.status.value,
            winner=self.winner,
            turn_phase=self.turn_phase.value,
            consecutive_sixes=self.consecutive_sixes,
            last_move=self.last_move,
            move_history=list(self.move_history),
            rules=self.rules.to_dict(),
            room_code=self.room_code,
        )

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    def player(self, player_id: UserId) -> Player:
        for player in self.players:
            if player.id == player_id:
                return player
        raise GameStateError(f"Player {player_id} is not part of game {self.game_id}")

    def roll_dice(self, player_id: UserId, value: int) -> list[Move]:
        """
        Register a die roll for the current player
        ----

        The value comes from the caller (the service owns the random source).

        1. game must be in progress, it must be your turn, and you must not have rolled already
        2. three sixes in a row (only when that house rule is on) forfeit the turn
        3. no legal move? the turn passes right away
        4. otherwise wait for the move

        Returns the legal moves for the roll.
        """
        self.assert_can_roll(player_id)
        if not is_valid_die(value):
            raise GameStateError(f"Invalid die value: {value}")

        self.dice_value = value
        self.consecutive_sixes = count_sixes(self.consecutive_sixes, value)

        if forfeits_turn(self.consecutive_sixes, self.rules):
            self._pass_turn()
            return []

        moves = self._generate_legal_moves()
        self.turn_phase = phase_after_roll(moves)
        if self.turn_phase == TurnPhase.TURN_COMPLETE:
            self._pass_turn()
        return moves

    def assert_can_roll(self, player_id: UserId) -> None:
        """Game in progress, your turn, and not rolled yet. The service checks this before drawing a value."""
        self._assert_in_progress()
        self._assert_your_turn(player_id)
        if self.turn_phase != TurnPhase.AWAITING_ROLL:
            raise GameStateError(f"Cannot roll now. turn phase: {self.turn_phase}")

    def legal_moves(self, player_id: UserId) -> list[Move]:
        """
        Service will request the set of legal moves.
        ----

        Empty until the player has rolled. Asking out of turn is an error.
        """
        self._assert_in_progress()
        self._assert_your_turn(player_id)
        if self.turn_phase != TurnPhase.AWAITING_MOVE:
            return []
        return self._generate_legal_moves()

    def make_move(self, player_id: UserId, piece_id: str) -> MoveRecord:
        """
        Attempt to move a piece with the rolled die
        -----

        1. the piece must have a legal move for the rolled value
        2. send a captured opponent back to its yard slot
        3. update the piece, the last move and the move history
        4. first player with all pieces home wins; otherwise extra turn or the turn passes
        """
        self._assert_in_progress()
        self._assert_your_turn(player_id)
        if self.turn_phase != TurnPhase.AWAITING_MOVE or self.dice_value is None:
            raise IllegalMoveError("Roll the dice before moving a piece")

        move = next((m for m in self._generate_legal_moves() if m.piece_id == piece_id), None)
        if move is None:
            raise IllegalMoveError(
                f"Piece {piece_id} cannot move {self.dice_value} step(s)"
            )

        player = self.current_player
        if move.captured_piece_id:
            self._capture(move.captured_piece_id)
        player.piece(piece_id).position = move.to_position

        record = MoveRecord(
            player_id=player.id,
            piece_id=piece_id,
            from_position=position_to_record(move.from_position),
            to_position=position_to_record(move.to_position),
            dice_value=self.dice_value,
            captured_piece_id=move.captured_piece_id,
        )
        self.last_move = record
        self.move_history.append(record)

        if has_player_won(player):
            self._finish(player.id)
        elif grants_extra_turn(self.dice_value, move):
            self.turn_phase = TurnPhase.AWAITING_ROLL
        else:
            self._pass_turn()
        return record

    def forfeit(self, player_id: UserId) -> Optional[UserId]:
        """
        Take a player out of the game (ex. they left the room)
        ----

        1. their pieces go back to the yard and their seat is skipped from now on
        2. a single player left in the running wins
        3. otherwise, if it was their turn, the turn passes

        Returns the winner when the forfeit decided the game.
        """
        self._assert_in_progress()
        player = self.player(player_id)
        if player.forfeited:
            raise GameStateError(f"{player_id} already forfeited game {self.game_id}")

        player.forfeited = True
        for piece in player.pieces:
            if not isinstance(piece.position, (Yard, Finished)):
                piece.send_home()

        remaining = [p for p in self.players if not p.forfeited]
        if len(remaining) == 1:
            self._finish(remaining[0].id)
            return self.winner
        if self.current_player.id == player_id:
            self._pass_turn()
        return None

    # -- PRIVATE HELPERS ---
    def _assert_in_progress(self) -> None:
        if self.status != GameStatus.PLAYING:
            raise GameNotActiveError(f"Game is not in progress. status: {self.status}")

    def _assert_your_turn(self, player_id: UserId) -> None:
        """You must wait for your turn before rolling / making a move."""
        turn_player = self.current_player.id
        if player_id != turn_player:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for player {turn_player} to play first."
            )

    def _generate_legal_moves(self) -> list[Move]:
        assert self.dice_value is not None
        return generate_moves(self, self.current_player, self.dice_value)

    def _capture(self, piece_id: str) -> None:
        for opponent in self.players:
            for piece in opponent.pieces:
                if piece.id == piece_id:
                    piece.send_home()
                    return
        raise GameStateError(f"Captured piece {piece_id} is not on the board")

    def _pass_turn(self) -> None:
        self.turn_phase = TurnPhase.TURN_COMPLETE
        self.current_player_index = next_player_index(self.players, self.current_player_index)
        self.consecutive_sixes = 0
        self.turn_phase = TurnPhase.AWAITING_ROLL

    def _finish(self, winner: UserId) -> None:
        # NOTE winner is set exactly once: the game is no longer in progress afterwards
        self.winner = winner
        self.status = GameStatus.FINISHED
        self.turn_phase = TurnPhase.TURN_COMPLETE
