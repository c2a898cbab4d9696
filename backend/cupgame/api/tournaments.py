from flask import Blueprint, jsonify, request, current_app
from cupgame import db
from cupgame.errors import IllegalAction, MatchNotFound
from cupgame.models import Tournament, TournamentTeam
from cupgame.services.games.session import GameSession
from cupgame.services.tournaments.bracket import (
    BracketStore,
    advance_after_game,
    build_bracket,
    start_match as svc_start_match,
    team_for_game_winner,
)
import json


tournaments = Blueprint('tournaments', __name__)


@tournaments.errorhandler(MatchNotFound)
def match_not_found(exc):
    return jsonify({'error': str(exc)}), 404


def _bracket_payload(tournament):
    rounds = {}
    for match in BracketStore().list_matches(tournament.id):
        rounds.setdefault(match.round, []).append(match.to_dict())
    payload = tournament.to_dict()
    payload['rounds'] = [
        {'round': number, 'matches': matches} for number, matches in sorted(rounds.items())
    ]
    return payload


def _match_in(tournament_id, match_id):
    match = BracketStore().get_match(match_id)
    if match is None or match.tournament_id != tournament_id:
        raise MatchNotFound(f'match {match_id} not found')
    return match


def _valid_team(entry) -> bool:
    if not isinstance(entry, dict):
        return False
    name, players = entry.get('name'), entry.get('players')
    return isinstance(name, str) and bool(name.strip()) and isinstance(players, list) and bool(players)


@tournaments.route('/create', methods=['POST'])
def create_tournament():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    name = (data.get('name') or '').strip()
    teams = data.get('teams') or []
    if not name:
        return jsonify({'error': 'Tournament name is required'}), 400
    if not isinstance(teams, list) or len(teams) < 2:
        return jsonify({'error': 'At least two teams are required'}), 400
    if not all(_valid_team(t) for t in teams):
        return jsonify({'error': 'Every team needs a name and at least one player'}), 400

    tournament = Tournament(name=name)
    db.session.add(tournament)
    db.session.flush()
    rows = [
        TournamentTeam(tournament_id=tournament.id, name=t['name'].strip(), players=json.dumps(t['players']))
        for t in teams
    ]
    db.session.add_all(rows)
    db.session.commit()
    current_app.logger.info(f"[tournament-create] tournament={tournament.id} teams={len(rows)}")
    try:
        build_bracket(tournament, [t.id for t in rows])
    except IllegalAction as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify(_bracket_payload(tournament)), 201


@tournaments.route('/<int:tournament_id>/bracket', methods=['GET'])
def get_bracket(tournament_id):
    tournament = db.session.get(Tournament, tournament_id)
    if tournament is None:
        return jsonify({'error': 'Tournament not found'}), 404
    return jsonify(_bracket_payload(tournament))


@tournaments.route('/<int:tournament_id>/matches/<int:match_id>/start', methods=['POST'])
def start_match(tournament_id, match_id):
    _match_in(tournament_id, match_id)
    try:
        game = svc_start_match(match_id)
    except IllegalAction as exc:
        return jsonify({'error': str(exc)}), 409
    return jsonify(GameSession(game).payload()), 201


@tournaments.route('/<int:tournament_id>/matches/<int:match_id>/advance', methods=['POST'])
def advance_match(tournament_id, match_id):
    """Re-run advancement for a match, e.g. after a failed seeding write.

    The winner comes from the body (``winner_team_id``), or from the linked
    completed game when omitted.
    """
    match = _match_in(tournament_id, match_id)
    data = request.get_json(silent=True) or {}
    winner_team_id = data.get('winner_team_id') or match.winner_team_id
    if winner_team_id is None and match.game_id is not None:
        game = GameSession.load(match.game_id).game
        if game.status == 'completed' and game.winner:
            winner_team_id = team_for_game_winner(match, game.winner)
    if winner_team_id is None:
        return jsonify({'error': 'Winner is unknown for this match'}), 409
    if winner_team_id not in (match.team_a_id, match.team_b_id):
        return jsonify({'error': 'Winner must be one of the match teams'}), 400
    try:
        result = advance_after_game(BracketStore(), tournament_id, match_id, winner_team_id)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.error(f"[bracket-failed] tournament={tournament_id} match={match_id} error={exc}")
        return jsonify({'error': 'Bracket advancement failed, try again'}), 500
    return jsonify(result.to_dict())
