"""Record-store access for games, players, score events and stats.

Also converts between the ``Game`` row and the reducer's ``GameState``.
"""

import json
from typing import Iterable, Optional

from flask import current_app

from cupgame import db
from cupgame.errors import IllegalAction
from cupgame.models import CUP_FORMATIONS, Game, Player, PlayerGameStats
from . import ledger
from .events import GameStart
from .state import GameState, PlayerRef, RedemptionContext, TeamState, TournamentLink

STAT_FIELDS = ('shots_attempted', 'shots_made', 'cups_hit', 'catches', 'redemption_shots')


def _player_rows(entries: Iterable, team: int):
    rows = []
    for position, entry in enumerate(entries):
        if isinstance(entry, str):
            entry = {'name': entry}
        name = (entry.get('name') or '').strip()
        if not name:
            raise IllegalAction('every player needs a name')
        user_id = entry.get('userId') or entry.get('user_id')
        rows.append(Player(
            team=team,
            position=position,
            name=name,
            is_registered_user=bool(user_id),
            user_id=str(user_id) if user_id else None,
        ))
    if not rows:
        raise IllegalAction(f'team {team} needs at least one player')
    return rows


def create_game(team1_players, team2_players, cup_formation: str = '10',
                tournament: Optional[TournamentLink] = None,
                team1_name: str = 'Team 1', team2_name: str = 'Team 2') -> Game:
    cup_formation = str(cup_formation)
    if cup_formation not in CUP_FORMATIONS:
        raise IllegalAction(f'unknown cup formation {cup_formation!r}')
    total = CUP_FORMATIONS[cup_formation]
    game = Game(
        cup_formation=cup_formation,
        total_cups_per_team=total,
        team1_name=team1_name or 'Team 1',
        team2_name=team2_name or 'Team 2',
        is_part_of_tournament=tournament is not None,
        tournament_id=tournament.tournament_id if tournament else None,
        tournament_match_id=tournament.match_id if tournament else None,
    )
    game.players = _player_rows(team1_players, 1) + _player_rows(team2_players, 2)
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(
        f"[game-create] game={game.id} cups={total} tournament={game.tournament_id} match={game.tournament_match_id}"
    )
    try:
        ledger.append_event(game, 'game_start', 1, None, GameStart(total_cups=total), 0, 0)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.error(f"[ledger-failed] game={game.id} event=game_start error={exc}")
    return game


def get_game(game_id) -> Optional[Game]:
    return db.session.get(Game, game_id)


def update_game(game_id, **fields) -> Optional[Game]:
    game = get_game(game_id)
    if game is None:
        return None
    for key, value in fields.items():
        setattr(game, key, value)
    game.version = (game.version or 0) + 1
    db.session.add(game)
    db.session.commit()
    return game


def append_score_event(game, event_type, team_number, player_id, payload, team1_score, team2_score):
    return ledger.append_event(game, event_type, team_number, player_id, payload, team1_score, team2_score)


def upsert_player_stats(game_id, player_id, team_number, deltas=None, **overrides) -> PlayerGameStats:
    """Add ``deltas`` to a player's counters, creating the row on first use.

    ``overrides`` are assigned as-is (final score, won flag).
    """
    stats = PlayerGameStats.query.filter_by(game_id=game_id, player_id=player_id).first()
    if stats is None:
        stats = PlayerGameStats(game_id=game_id, player_id=player_id, team_number=team_number)
        for name in STAT_FIELDS:
            setattr(stats, name, 0)
        stats.final_score = 0
        stats.won = False
    for name, amount in (deltas or {}).items():
        if name not in STAT_FIELDS:
            raise ValueError(f'unknown stat {name!r}')
        setattr(stats, name, (getattr(stats, name) or 0) + amount)
    for name, value in overrides.items():
        setattr(stats, name, value)
    db.session.add(stats)
    db.session.commit()
    return stats


def stats_for(game_id):
    return PlayerGameStats.query.filter_by(game_id=game_id).order_by(PlayerGameStats.player_id).all()


# ---- Game row <-> reducer state ----

def _team_state(game: Game, number: int) -> TeamState:
    players = tuple(
        PlayerRef(id=p.id, name=p.name, user_id=p.user_id) for p in game.team_players(number)
    )
    return TeamState(
        name=game.team1_name if number == 1 else game.team2_name,
        players=players,
        score=game.team1_score if number == 1 else game.team2_score,
        last_index=game.team1_last_index if number == 1 else game.team2_last_index,
        drink_index=game.team1_drink_index if number == 1 else game.team2_drink_index,
    )


def to_state(game: Game) -> GameState:
    redemption = None
    if game.redemption_team:
        redemption = RedemptionContext(
            redemption_team=game.redemption_team,
            winning_team=game.redemption_winning_team,
            winning_index=game.redemption_winning_index or 0,
        )
    used = set()
    if game.team1_redemption_used:
        used.add(1)
    if game.team2_redemption_used:
        used.add(2)
    tournament = None
    if game.tournament_id is not None and game.tournament_match_id is not None:
        tournament = TournamentLink(game.tournament_id, game.tournament_match_id)
    return GameState(
        game_id=game.id,
        total_cups=game.total_cups_per_team,
        team1=_team_state(game, 1),
        team2=_team_state(game, 2),
        current_team=game.current_team,
        current_player_index=game.current_player_index,
        status=game.status,
        winner=game.winner,
        redemption=redemption,
        redemption_used=frozenset(used),
        island_calls=frozenset(game.island_call_ids),
        island_player_id=game.island_player_id,
        tournament=tournament,
    )


def state_fields(state: GameState) -> dict:
    """Columns to write for ``state``."""
    ctx = state.redemption
    return {
        'status': state.status,
        'winner': state.winner,
        'current_team': state.current_team,
        'current_player_index': state.current_player_index,
        'team1_score': state.team1.score,
        'team2_score': state.team2.score,
        'team1_last_index': state.team1.last_index,
        'team2_last_index': state.team2.last_index,
        'team1_drink_index': state.team1.drink_index,
        'team2_drink_index': state.team2.drink_index,
        'redemption_team': ctx.redemption_team if ctx else None,
        'redemption_winning_team': ctx.winning_team if ctx else None,
        'redemption_winning_index': ctx.winning_index if ctx else None,
        'team1_redemption_used': 1 in state.redemption_used,
        'team2_redemption_used': 2 in state.redemption_used,
        'island_player_id': state.island_player_id,
        'island_calls': json.dumps(sorted(state.island_calls)),
    }
