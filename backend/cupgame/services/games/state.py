"""Cup game state machine.

``reduce(state, action)`` is a pure transition function returning the new
state and a list of effects (persist, broadcast, ledger writes, stats,
celebrations, undo window, bracket advancement). The runtime in
:mod:`cupgame.services.games.session` executes the effects; nothing here
touches the database or sockets.

States: normal turn -> redemption -> completed. A team that reaches the
winning score is challenged once by the opponent's redemption shot unless the
opponent has already used its redemption this game.
"""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, List, Optional, Tuple

from .events import (
    Catch,
    GameEnd,
    RedemptionEnd,
    RedemptionStart,
    ShotHit,
    ShotMiss,
)
from .rotation import next_drinker, other_team, pass_turn, return_turn

ACTIVE = 'active'
COMPLETED = 'completed'


# ---- State ----

@dataclass(frozen=True)
class PlayerRef:
    id: int
    name: str
    user_id: Optional[str] = None


@dataclass(frozen=True)
class TeamState:
    name: str
    players: Tuple[PlayerRef, ...]
    score: int = 0
    last_index: int = -1
    drink_index: int = 0


@dataclass(frozen=True)
class RedemptionContext:
    redemption_team: int
    winning_team: int
    # index of the challenged team's shooter who reached the winning score
    winning_index: int = 0


@dataclass(frozen=True)
class TournamentLink:
    tournament_id: int
    match_id: int


@dataclass(frozen=True)
class TurnSnapshot:
    """Scores and turn position restored by an undo."""
    team1_score: int
    team2_score: int
    current_team: int
    current_player_index: int
    team1_last_index: int
    team2_last_index: int

    def to_dict(self):
        return {
            'team1_score': self.team1_score,
            'team2_score': self.team2_score,
            'current_team': self.current_team,
            'current_player_index': self.current_player_index,
        }


@dataclass(frozen=True)
class GameState:
    total_cups: int
    team1: TeamState
    team2: TeamState
    game_id: Optional[int] = None
    current_team: int = 1
    current_player_index: int = 0
    status: str = ACTIVE
    winner: Optional[int] = None
    redemption: Optional[RedemptionContext] = None
    redemption_used: FrozenSet[int] = frozenset()
    island_calls: FrozenSet[int] = frozenset()
    island_player_id: Optional[int] = None
    tournament: Optional[TournamentLink] = None

    def team(self, number: int) -> TeamState:
        return self.team1 if number == 1 else self.team2

    def with_team(self, number: int, **changes) -> 'GameState':
        if number == 1:
            return replace(self, team1=replace(self.team1, **changes))
        return replace(self, team2=replace(self.team2, **changes))

    def score(self, number: int) -> int:
        return self.team(number).score

    @property
    def shooting_team(self) -> int:
        if self.redemption is not None:
            return self.redemption.redemption_team
        return self.current_team

    @property
    def current_player(self) -> Optional[PlayerRef]:
        players = self.team(self.shooting_team).players
        if not players:
            return None
        return players[self.current_player_index % len(players)]

    @property
    def island_active(self) -> bool:
        """True only while the player who called island is the one shooting."""
        shooter = self.current_player
        return (
            self.island_player_id is not None
            and shooter is not None
            and shooter.id == self.island_player_id
        )

    def on_match_point(self, number: int) -> bool:
        return self.score(number) >= self.total_cups - 1

    def snapshot(self) -> TurnSnapshot:
        return TurnSnapshot(
            team1_score=self.team1.score,
            team2_score=self.team2.score,
            current_team=self.current_team,
            current_player_index=self.current_player_index,
            team1_last_index=self.team1.last_index,
            team2_last_index=self.team2.last_index,
        )


def new_game(total_cups: int, team1: TeamState, team2: TeamState, **kwargs) -> GameState:
    """Initial state: team 1's first player shoots."""
    team1 = replace(team1, score=0, last_index=0, drink_index=0)
    team2 = replace(team2, score=0, last_index=-1, drink_index=0)
    return GameState(total_cups=total_cups, team1=team1, team2=team2, **kwargs)


# ---- Actions ----

@dataclass(frozen=True)
class RecordHit:
    pass


@dataclass(frozen=True)
class RecordMiss:
    pass


@dataclass(frozen=True)
class RecordCatch:
    # which player of the catching team made the catch
    catcher_index: int = 0


@dataclass(frozen=True)
class CallIsland:
    player_id: int


@dataclass(frozen=True)
class CompleteGame:
    winner: int


@dataclass(frozen=True)
class Undo:
    snapshot: TurnSnapshot


@dataclass(frozen=True)
class CheckConsistency:
    pass


# ---- Effects ----

@dataclass(frozen=True)
class PersistGame:
    pass


@dataclass(frozen=True)
class BroadcastState:
    pass


@dataclass(frozen=True)
class AppendScoreEvent:
    event_type: str
    team_number: int
    player_id: Optional[int]
    payload: object
    team1_score: int
    team2_score: int


@dataclass(frozen=True)
class UpsertPlayerStats:
    player_id: int
    team_number: int
    deltas: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PublishUIEvent:
    type: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FinalizeStats:
    winner: int


@dataclass(frozen=True)
class AdvanceBracket:
    link: TournamentLink
    winner: int


@dataclass(frozen=True)
class OpenUndoWindow:
    snapshot: TurnSnapshot


@dataclass(frozen=True)
class CloseUndoWindow:
    pass


# ---- Guards ----

def rejection_reason(state: GameState, action) -> Optional[str]:
    """Why ``action`` is not allowed in ``state``; None when it is."""
    if isinstance(action, (CheckConsistency, CompleteGame)):
        if isinstance(action, CompleteGame) and action.winner not in (1, 2):
            return 'winner must be team 1 or 2'
        return None
    if state.status == COMPLETED:
        return 'game is completed'
    if isinstance(action, (RecordHit, RecordMiss)):
        if state.current_player is None:
            return 'shooting team has no players'
        return None
    if isinstance(action, RecordCatch):
        if state.on_match_point(state.shooting_team):
            return 'cannot catch a team on match point'
        if not state.team(other_team(state.shooting_team)).players:
            return 'catching team has no players'
        return None
    if isinstance(action, CallIsland):
        shooter = state.current_player
        if shooter is None or shooter.id != action.player_id:
            return 'only the current shooter can call island'
        if action.player_id in state.island_calls:
            return 'island already called by this player'
        if state.redemption is not None:
            return 'island is not allowed during redemption'
        if state.on_match_point(state.shooting_team):
            return 'island is not allowed on match point'
        return None
    return None


# ---- Transitions ----

def reduce(state: GameState, action) -> Tuple[GameState, List[object]]:
    if rejection_reason(state, action) is not None:
        return state, []
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f'unknown action {action!r}')
    return handler(state, action)


def _event(state, event_type, team, player_id, payload):
    return AppendScoreEvent(
        event_type=event_type,
        team_number=team,
        player_id=player_id,
        payload=payload,
        team1_score=state.team1.score,
        team2_score=state.team2.score,
    )


def _saved(state, effects, undo=None):
    if undo is not None:
        effects.append(OpenUndoWindow(undo))
    else:
        effects.append(CloseUndoWindow())
    effects.append(PersistGame())
    effects.append(BroadcastState())
    return state, effects


def _complete(state, winner, effects):
    if state.status == COMPLETED:
        return state, effects
    state = replace(state, status=COMPLETED, winner=winner, redemption=None, island_player_id=None)
    effects.append(_event(state, 'game_end', winner, None, GameEnd(winner=winner)))
    effects.append(FinalizeStats(winner))
    effects.append(CloseUndoWindow())
    effects.append(PersistGame())
    effects.append(BroadcastState())
    effects.append(PublishUIEvent('confetti', {'winner': winner}))
    if state.tournament is not None:
        effects.append(AdvanceBracket(state.tournament, winner))
    return state, effects


def _record_hit(state, action):
    team = state.shooting_team
    shooter = state.current_player
    island = state.island_active
    points = 2 if island else 1
    hit_type = 'island' if island else 'shot_hit'
    base = replace(state, island_player_id=None)
    effects = []

    ctx = state.redemption
    if ctx is not None and team == ctx.redemption_team:
        # Redemption hit voids one of the challenged team's cups instead of scoring
        challenged = ctx.winning_team
        after = base.with_team(challenged, score=max(0, base.score(challenged) - 1))
        next_index = (ctx.winning_index + 1) % len(after.team(challenged).players)
        after = return_turn(after, challenged, next_index)
        after = replace(after, redemption=None, redemption_used=state.redemption_used | {team})
        after, drinker = next_drinker(after, challenged)
        effects.append(_event(after, 'redemption_end', team, shooter.id, RedemptionEnd(
            successful=True,
            redemption_team=team,
            voided_team=challenged,
            drinking_player=drinker.name,
        )))
        effects.append(UpsertPlayerStats(shooter.id, team, {
            'shots_attempted': 1, 'shots_made': 1, 'redemption_shots': 1,
        }))
        effects.append(PublishUIEvent('redemption_end', {'successful': True, 'redemption_team': team}))
        effects.append(PublishUIEvent('hit_celebration', {'drinking_player': drinker.name}))
        return _saved(after, effects)

    before = base.score(team)
    score = min(before + points, state.total_cups)
    after = base.with_team(team, score=score)
    opponent = other_team(team)
    stats = UpsertPlayerStats(shooter.id, team, {
        'shots_attempted': 1, 'shots_made': 1, 'cups_hit': score - before,
    })

    if score >= state.total_cups:
        if opponent not in state.redemption_used:
            after = replace(
                after,
                redemption=RedemptionContext(opponent, team, state.current_player_index),
                current_team=opponent,
                current_player_index=0,
            )
            effects.append(_event(after, hit_type, team, shooter.id, ShotHit(
                points=points, island=island, opposing_team=opponent,
            )))
            effects.append(stats)
            effects.append(_event(after, 'redemption_start', team, shooter.id, RedemptionStart(
                winning_team=team, redemption_team=opponent,
            )))
            effects.append(PublishUIEvent('redemption_start', {
                'winning_team': team, 'redemption_team': opponent,
            }))
            return _saved(after, effects)

        after, drinker = next_drinker(after, opponent)
        effects.append(_event(after, hit_type, team, shooter.id, ShotHit(
            points=points, island=island, opposing_team=opponent, drinking_player=drinker.name,
        )))
        effects.append(stats)
        effects.append(PublishUIEvent('hit_celebration', {'drinking_player': drinker.name}))
        return _complete(after, team, effects)

    after, drinker = next_drinker(after, opponent)
    effects.append(_event(after, hit_type, team, shooter.id, ShotHit(
        points=points, island=island, opposing_team=opponent, drinking_player=drinker.name,
    )))
    effects.append(stats)
    effects.append(PublishUIEvent('hit_celebration', {'drinking_player': drinker.name}))
    return _saved(after, effects, undo=state.snapshot())


def _record_miss(state, action):
    team = state.shooting_team
    shooter = state.current_player
    island = state.island_active
    base = replace(state, island_player_id=None)
    ctx = state.redemption
    in_redemption = ctx is not None and team == ctx.redemption_team
    deltas = {'shots_attempted': 1}
    if in_redemption:
        deltas['redemption_shots'] = 1
    effects = [
        _event(base, 'shot_miss', team, shooter.id, ShotMiss(island=island, redemption=in_redemption)),
        UpsertPlayerStats(shooter.id, team, deltas),
    ]

    if in_redemption:
        # Failed redemption: the challenged team wins with its capped score
        winner = ctx.winning_team
        after = base.with_team(winner, score=state.total_cups)
        after = replace(after, redemption=None, redemption_used=state.redemption_used | {team})
        effects.append(_event(after, 'redemption_end', team, shooter.id, RedemptionEnd(
            successful=False, redemption_team=team, winning_team=winner,
        )))
        effects.append(PublishUIEvent('redemption_end', {'successful': False, 'redemption_team': team}))
        return _complete(after, winner, effects)

    after = pass_turn(base, other_team(team))
    effects.append(PublishUIEvent('miss_celebration', {'next_player': after.current_player.name}))
    return _saved(after, effects, undo=state.snapshot())


def _record_catch(state, action):
    shooting = state.shooting_team
    catching = other_team(shooting)
    shooter = state.current_player
    catchers = state.team(catching).players
    catcher = catchers[action.catcher_index % len(catchers)]
    base = replace(state, island_player_id=None)
    effects = []

    after = base
    ctx = state.redemption
    if ctx is not None:
        after = replace(after, redemption=None, redemption_used=state.redemption_used | {shooting})

    # A catch is always worth exactly one cup
    after = after.with_team(catching, score=min(after.score(catching) + 1, state.total_cups))
    after, drinker = next_drinker(after, shooting)
    effects.append(_event(after, 'catch', catching, catcher.id, Catch(
        catcher=catcher.name, shooting_team=shooting, drinking_player=drinker.name,
    )))
    effects.append(UpsertPlayerStats(catcher.id, catching, {'catches': 1}))
    effects.append(UpsertPlayerStats(shooter.id, shooting, {'shots_attempted': 1}))
    effects.append(PublishUIEvent('catch_celebration', {
        'drinking_player': drinker.name, 'catcher': catcher.name,
    }))
    if ctx is not None:
        effects.append(_event(after, 'redemption_end', shooting, shooter.id, RedemptionEnd(
            successful=False, redemption_team=shooting, winning_team=ctx.winning_team,
        )))
        effects.append(PublishUIEvent('redemption_end', {'successful': False, 'redemption_team': shooting}))

    if after.score(catching) >= state.total_cups:
        return _complete(after, catching, effects)

    after = pass_turn(after, catching)
    return _saved(after, effects, undo=state.snapshot())


def _call_island(state, action):
    player = state.current_player
    after = replace(
        state,
        island_player_id=action.player_id,
        island_calls=state.island_calls | {action.player_id},
    )
    return after, [
        PersistGame(),
        BroadcastState(),
        PublishUIEvent('island_call', {'player_id': player.id, 'player': player.name}),
    ]


def _complete_game(state, action):
    return _complete(state, action.winner, [])


def _undo(state, action):
    snap = action.snapshot
    after = state.with_team(1, score=snap.team1_score, last_index=snap.team1_last_index)
    after = after.with_team(2, score=snap.team2_score, last_index=snap.team2_last_index)
    after = replace(after, current_team=snap.current_team, current_player_index=snap.current_player_index)
    if state.island_player_id is not None:
        # An unused island call is handed back to its caller
        after = replace(
            after,
            island_player_id=None,
            island_calls=state.island_calls - {state.island_player_id},
        )
    effects = [PublishUIEvent('undo', snap.to_dict())]
    return _saved(after, effects)


def _check_consistency(state, action):
    if state.status == COMPLETED:
        return state, []
    for number in (1, 2):
        if state.score(number) > state.total_cups:
            healed = state.with_team(1, score=min(state.team1.score, state.total_cups))
            healed = healed.with_team(2, score=min(healed.team2.score, state.total_cups))
            return _complete(healed, number, [])
    return state, []


_HANDLERS = {
    RecordHit: _record_hit,
    RecordMiss: _record_miss,
    RecordCatch: _record_catch,
    CallIsland: _call_island,
    CompleteGame: _complete_game,
    Undo: _undo,
    CheckConsistency: _check_consistency,
}
