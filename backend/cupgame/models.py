from cupgame import db
from datetime import datetime
import json

CUP_FORMATIONS = {'6': 6, '10': 10}


def _now():
    return datetime.utcnow()


def _load_json(raw, default):
    try:
        return json.loads(raw) if raw else default
    except (TypeError, ValueError):
        return default


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team = db.Column(db.Integer, nullable=False)  # 1 or 2
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(64), nullable=False)
    is_registered_user = db.Column(db.Boolean, default=False, nullable=False)
    user_id = db.Column(db.String(64), nullable=True)  # only for registered users
    game = db.relationship('Game', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'team': self.team,
            'isRegisteredUser': self.is_registered_user,
            'userId': self.user_id,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), default='active', nullable=False)  # active, completed
    winner = db.Column(db.Integer, nullable=True)
    current_team = db.Column(db.Integer, default=1, nullable=False)
    current_player_index = db.Column(db.Integer, default=0, nullable=False)
    cup_formation = db.Column(db.String(4), default='10', nullable=False)
    total_cups_per_team = db.Column(db.Integer, default=10, nullable=False)
    team1_name = db.Column(db.String(64), default='Team 1')
    team2_name = db.Column(db.String(64), default='Team 2')
    team1_score = db.Column(db.Integer, default=0, nullable=False)
    team2_score = db.Column(db.Integer, default=0, nullable=False)
    # Tournament link; both null for a casual game
    is_part_of_tournament = db.Column(db.Boolean, default=False, nullable=False)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=True)
    tournament_match_id = db.Column(db.Integer, nullable=True)
    # Redemption context
    redemption_team = db.Column(db.Integer, nullable=True)
    redemption_winning_team = db.Column(db.Integer, nullable=True)
    redemption_winning_index = db.Column(db.Integer, nullable=True)
    team1_redemption_used = db.Column(db.Boolean, default=False, nullable=False)
    team2_redemption_used = db.Column(db.Boolean, default=False, nullable=False)
    # Island mode
    island_player_id = db.Column(db.Integer, nullable=True)
    island_calls = db.Column(db.Text, nullable=True)  # JSON list of player ids
    # Per-team rotations: last shooter index and next drinker index
    team1_last_index = db.Column(db.Integer, default=0, nullable=False)
    team2_last_index = db.Column(db.Integer, default=-1, nullable=False)
    team1_drink_index = db.Column(db.Integer, default=0, nullable=False)
    team2_drink_index = db.Column(db.Integer, default=0, nullable=False)
    version = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=_now)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now)

    players = db.relationship('Player', back_populates='game', order_by=[Player.team, Player.position])
    events = db.relationship('ScoreEvent', backref='game', lazy='dynamic', order_by='ScoreEvent.id')

    def team_players(self, team):
        return [p for p in self.players if p.team == team]

    @property
    def island_call_ids(self):
        return _load_json(self.island_calls, [])

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'winner': self.winner,
            'current_team': self.current_team,
            'current_player_index': self.current_player_index,
            'cup_formation': self.cup_formation,
            'total_cups_per_team': self.total_cups_per_team,
            'team1': {
                'team_name': self.team1_name,
                'score': self.team1_score,
                'players': [p.to_dict() for p in self.team_players(1)],
            },
            'team2': {
                'team_name': self.team2_name,
                'score': self.team2_score,
                'players': [p.to_dict() for p in self.team_players(2)],
            },
            'is_part_of_tournament': self.is_part_of_tournament,
            'tournament': (
                {'tournament_id': self.tournament_id, 'match_id': self.tournament_match_id}
                if self.tournament_id is not None else None
            ),
            'redemption': (
                {
                    'redemption_team': self.redemption_team,
                    'winning_team': self.redemption_winning_team,
                }
                if self.redemption_team else None
            ),
            'redemption_used': {
                '1': self.team1_redemption_used,
                '2': self.team2_redemption_used,
            },
            'island_player_id': self.island_player_id,
            'island_calls': self.island_call_ids,
            'version': self.version,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class ScoreEvent(db.Model):
    __tablename__ = 'score_event'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, nullable=True)
    event_type = db.Column(db.String(32), nullable=False)
    team_number = db.Column(db.Integer, nullable=False)
    team1_cups = db.Column(db.Integer, nullable=False)
    team2_cups = db.Column(db.Integer, nullable=False)
    team1_score = db.Column(db.Integer, nullable=False)
    team2_score = db.Column(db.Integer, nullable=False)
    event_data = db.Column(db.Text, nullable=True)  # JSON payload, tagged by kind
    created_at = db.Column(db.DateTime, default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'event_type': self.event_type,
            'team_number': self.team_number,
            'score_after_event': {
                'team1_cups': self.team1_cups,
                'team2_cups': self.team2_cups,
                'team1_score': self.team1_score,
                'team2_score': self.team2_score,
            },
            'event_data': _load_json(self.event_data, None),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PlayerGameStats(db.Model):
    __tablename__ = 'player_game_stats'
    __table_args__ = (db.UniqueConstraint('game_id', 'player_id', name='uq_stats_game_player'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    team_number = db.Column(db.Integer, nullable=False)
    shots_attempted = db.Column(db.Integer, default=0, nullable=False)
    shots_made = db.Column(db.Integer, default=0, nullable=False)
    cups_hit = db.Column(db.Integer, default=0, nullable=False)
    catches = db.Column(db.Integer, default=0, nullable=False)
    redemption_shots = db.Column(db.Integer, default=0, nullable=False)
    final_score = db.Column(db.Integer, default=0, nullable=False)
    won = db.Column(db.Boolean, default=False, nullable=False)

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'player_id': self.player_id,
            'team_number': self.team_number,
            'shots_attempted': self.shots_attempted,
            'shots_made': self.shots_made,
            'cups_hit': self.cups_hit,
            'catches': self.catches,
            'redemption_shots': self.redemption_shots,
            'final_score': self.final_score,
            'won': self.won,
        }


class Tournament(db.Model):
    __tablename__ = 'tournament'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), default='pending', nullable=False)  # pending, started, completed
    created_at = db.Column(db.DateTime, default=_now)
    teams = db.relationship('TournamentTeam', backref='tournament', order_by='TournamentTeam.id')
    matches = db.relationship(
        'TournamentMatch', backref='tournament',
        order_by=lambda: [TournamentMatch.round, TournamentMatch.match_index],
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status,
            'teams': [t.to_dict() for t in self.teams],
        }


class TournamentTeam(db.Model):
    __tablename__ = 'tournament_team'
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    players = db.Column(db.Text, nullable=True)  # JSON list of {name, user_id}

    @property
    def player_entries(self):
        return _load_json(self.players, [])

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'players': self.player_entries}


class TournamentMatch(db.Model):
    __tablename__ = 'tournament_match'
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=False, index=True)
    round = db.Column(db.Integer, nullable=False)
    match_index = db.Column(db.Integer, nullable=False)
    team_a_id = db.Column(db.Integer, db.ForeignKey('tournament_team.id'), nullable=True)
    team_b_id = db.Column(db.Integer, db.ForeignKey('tournament_team.id'), nullable=True)
    winner_team_id = db.Column(db.Integer, db.ForeignKey('tournament_team.id'), nullable=True)
    status = db.Column(db.String(16), default='pending', nullable=False)  # pending, in_progress, complete
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'round': self.round,
            'match_index': self.match_index,
            'team_a_id': self.team_a_id,
            'team_b_id': self.team_b_id,
            'winner_team_id': self.winner_team_id,
            'status': self.status,
            'game_id': self.game_id,
        }
