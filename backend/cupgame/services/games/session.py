"""Runs reducer actions against a stored game and executes their effects.

Each effect is executed independently: a failed database write or broadcast
is rolled back and logged, and the remaining effects still run.
"""

import random
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from cupgame import db
from cupgame.errors import GameNotFound
from . import broadcast, store
from .state import (
    AdvanceBracket,
    AppendScoreEvent,
    BroadcastState,
    CallIsland,
    CheckConsistency,
    COMPLETED,
    CloseUndoWindow,
    CompleteGame,
    FinalizeStats,
    OpenUndoWindow,
    PersistGame,
    PublishUIEvent,
    RecordCatch,
    RecordHit,
    RecordMiss,
    Undo,
    UpsertPlayerStats,
    reduce,
    rejection_reason,
)
from .rotation import other_team

_ACTION_TAGS = {
    RecordHit: 'hit',
    RecordMiss: 'miss',
    RecordCatch: 'catch',
    CallIsland: 'island',
    CompleteGame: 'complete',
    Undo: 'undo',
    CheckConsistency: 'heal',
}


@dataclass
class ActionResult:
    applied: bool
    reason: Optional[str] = None


def undo_windows():
    return current_app.extensions['cupgame_undo']


class GameSession:

    def __init__(self, game, undo_window=None):
        self.game = game
        if undo_window is None:
            windows = undo_windows()
            undo_window = windows.detached() if game.status == COMPLETED else windows.get(game.id)
        self.undo_window = undo_window
        self.state = store.to_state(game)

    @classmethod
    def load(cls, game_id) -> 'GameSession':
        game = store.get_game(game_id)
        if game is None:
            raise GameNotFound(f'game {game_id} not found')
        session = cls(game)
        # Heal games left over the cap by an earlier concurrent write
        session.apply(CheckConsistency())
        return session

    def payload(self) -> dict:
        return broadcast.state_payload(self.game, self.undo_window)

    def apply(self, action) -> ActionResult:
        reason = rejection_reason(self.state, action)
        if reason is not None:
            current_app.logger.info(
                f"[rejected] game={self.game.id} action={type(action).__name__} reason={reason}"
            )
            return ActionResult(applied=False, reason=reason)
        before = self.state
        self.state, effects = reduce(self.state, action)
        if effects:
            current_app.logger.info(
                f"[{_ACTION_TAGS.get(type(action), 'action')}] game={self.game.id} "
                f"team={before.shooting_team} score={self.state.team1.score}-{self.state.team2.score} "
                f"status={self.state.status}"
            )
        for effect in effects:
            self._execute(effect)
        return ActionResult(applied=True)

    # ---- Convenience entry points ----

    def hit(self) -> ActionResult:
        return self.apply(RecordHit())

    def miss(self) -> ActionResult:
        return self.apply(RecordMiss())

    def catch(self, catcher_index: Optional[int] = None) -> ActionResult:
        if catcher_index is None:
            catchers = self.state.team(other_team(self.state.shooting_team)).players
            catcher_index = random.randrange(max(1, len(catchers)))
        return self.apply(RecordCatch(catcher_index=catcher_index))

    def call_island(self, player_id: int) -> ActionResult:
        return self.apply(CallIsland(player_id=player_id))

    def complete(self, winner: int) -> ActionResult:
        return self.apply(CompleteGame(winner=winner))

    def undo(self) -> ActionResult:
        if self.state.status != 'active':
            return ActionResult(applied=False, reason='game is completed')
        snapshot = self.undo_window.take()
        if snapshot is None:
            return ActionResult(applied=False, reason='undo window closed')
        return self.apply(Undo(snapshot))

    # ---- Effects ----

    def _execute(self, effect) -> None:
        handler = getattr(self, f'_do_{type(effect).__name__}', None)
        if handler is None:
            raise TypeError(f'unknown effect {effect!r}')
        try:
            handler(effect)
        except Exception as exc:
            db.session.rollback()
            current_app.logger.error(
                f"[effect-failed] game={self.game.id} effect={type(effect).__name__} error={exc}"
            )

    def _do_PersistGame(self, effect: PersistGame) -> None:
        store.update_game(self.game.id, **store.state_fields(self.state))

    def _do_BroadcastState(self, effect: BroadcastState) -> None:
        broadcast.publish_state(self.game, self.undo_window)

    def _do_AppendScoreEvent(self, effect: AppendScoreEvent) -> None:
        store.append_score_event(
            self.game, effect.event_type, effect.team_number, effect.player_id,
            effect.payload, effect.team1_score, effect.team2_score,
        )

    def _do_UpsertPlayerStats(self, effect: UpsertPlayerStats) -> None:
        store.upsert_player_stats(self.game.id, effect.player_id, effect.team_number, effect.deltas)

    def _do_PublishUIEvent(self, effect: PublishUIEvent) -> None:
        broadcast.publish_ui_event(self.game.id, effect.type, effect.data)

    def _do_FinalizeStats(self, effect: FinalizeStats) -> None:
        for number in (1, 2):
            for player in self.state.team(number).players:
                store.upsert_player_stats(
                    self.game.id, player.id, number,
                    final_score=self.state.score(number),
                    won=number == effect.winner,
                )
        current_app.logger.info(f"[stats-final] game={self.game.id} winner={effect.winner}")

    def _do_AdvanceBracket(self, effect: AdvanceBracket) -> None:
        if not current_app.config.get('BRACKET_AUTO_ADVANCE', True):
            current_app.logger.info(
                f"[bracket-skip] game={self.game.id} tournament={effect.link.tournament_id} auto-advance off"
            )
            return
        from cupgame.services.tournaments.bracket import BracketStore, advance_after_game, team_for_game_winner

        bracket_store = BracketStore()
        match = bracket_store.get_match(effect.link.match_id)
        if match is None:
            current_app.logger.warning(
                f"[bracket-missing] game={self.game.id} match={effect.link.match_id}"
            )
            return
        winner_team_id = team_for_game_winner(match, effect.winner)
        if winner_team_id is None:
            current_app.logger.warning(
                f"[bracket-missing] game={self.game.id} match={match.id} winner={effect.winner} has no team"
            )
            return
        advance_after_game(bracket_store, effect.link.tournament_id, match.id, winner_team_id)

    def _do_OpenUndoWindow(self, effect: OpenUndoWindow) -> None:
        self.undo_window.open(effect.snapshot)

    def _do_CloseUndoWindow(self, effect: CloseUndoWindow) -> None:
        self.undo_window.close()
        if self.state.status == COMPLETED:
            undo_windows().discard(self.game.id)
