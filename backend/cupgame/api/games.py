from flask import Blueprint, jsonify, request, current_app
from cupgame.errors import GameNotFound, IllegalAction
from cupgame.services.games import ledger
from cupgame.services.games.session import GameSession
from cupgame.services.games.store import create_game as svc_create_game, stats_for


games = Blueprint('games', __name__)


@games.errorhandler(GameNotFound)
def game_not_found(exc):
    return jsonify({'error': 'Game not found'}), 404


def _result_response(session, result):
    if not result.applied:
        return jsonify({'error': result.reason}), 409
    return jsonify(session.payload())


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    formation = data.get('cup_formation') or current_app.config.get('DEFAULT_CUP_FORMATION', '10')
    try:
        game = svc_create_game(
            data.get('team1_players') or [],
            data.get('team2_players') or [],
            cup_formation=formation,
            team1_name=data.get('team1_name') or 'Team 1',
            team2_name=data.get('team2_name') or 'Team 2',
        )
    except IllegalAction as exc:
        return jsonify({'error': str(exc)}), 400
    return jsonify(game.to_dict()), 201


@games.route('/<int:game_id>/state', methods=['GET'])
def get_state(game_id):
    session = GameSession.load(game_id)
    return jsonify(session.payload())


@games.route('/<int:game_id>/events', methods=['GET'])
def get_events(game_id):
    session = GameSession.load(game_id)
    return jsonify({
        'game_id': session.game.id,
        'events': [e.to_dict() for e in ledger.events_for(game_id)],
        'last_drinking_player': ledger.last_drinking_player(game_id),
    })


@games.route('/<int:game_id>/stats', methods=['GET'])
def get_stats(game_id):
    session = GameSession.load(game_id)
    return jsonify({'game_id': session.game.id, 'stats': [s.to_dict() for s in stats_for(game_id)]})


@games.route('/<int:game_id>/hit', methods=['POST'])
def record_hit(game_id):
    session = GameSession.load(game_id)
    return _result_response(session, session.hit())


@games.route('/<int:game_id>/miss', methods=['POST'])
def record_miss(game_id):
    session = GameSession.load(game_id)
    return _result_response(session, session.miss())


@games.route('/<int:game_id>/catch', methods=['POST'])
def record_catch(game_id):
    data = request.get_json(silent=True) or {}
    catcher_index = data.get('catcher_index')
    if catcher_index is not None and not isinstance(catcher_index, int):
        return jsonify({'error': 'catcher_index must be an integer'}), 400
    session = GameSession.load(game_id)
    return _result_response(session, session.catch(catcher_index))


@games.route('/<int:game_id>/island', methods=['POST'])
def call_island(game_id):
    data = request.get_json(silent=True) or {}
    player_id = data.get('player_id')
    if not isinstance(player_id, int):
        return jsonify({'error': 'player_id is required'}), 400
    session = GameSession.load(game_id)
    return _result_response(session, session.call_island(player_id))


@games.route('/<int:game_id>/undo', methods=['POST'])
def undo(game_id):
    session = GameSession.load(game_id)
    return _result_response(session, session.undo())


@games.route('/<int:game_id>/complete', methods=['POST'])
def complete(game_id):
    data = request.get_json(silent=True) or {}
    winner = data.get('winner')
    if winner not in (1, 2):
        return jsonify({'error': 'winner must be 1 or 2'}), 400
    session = GameSession.load(game_id)
    return _result_response(session, session.complete(winner))
