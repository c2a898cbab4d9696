"""Single-elimination bracket: building rounds and advancing winners.

Advancement is a sequence of separate writes (mark complete, check the
round, seed the next round, place byes). Every step only fills empty slots
and skips winners that already appear in a later round, so calling
``advance_after_game`` again for the same match is a no-op.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app

from cupgame import db
from cupgame.errors import IllegalAction, MatchNotFound
from cupgame.models import Tournament, TournamentMatch, TournamentTeam

PENDING = 'pending'
IN_PROGRESS = 'in_progress'
COMPLETE = 'complete'

TOURNAMENT_CUP_FORMATION = '6'


class BracketStore:
    """Match and tournament reads/writes used by the advancement engine."""

    def get_match(self, match_id) -> Optional[TournamentMatch]:
        return db.session.get(TournamentMatch, match_id)

    def update_match(self, match_id, **fields) -> TournamentMatch:
        match = self.get_match(match_id)
        if match is None:
            raise MatchNotFound(f'match {match_id} not found')
        for key, value in fields.items():
            setattr(match, key, value)
        db.session.add(match)
        db.session.commit()
        return match

    def list_matches_by_round(self, tournament_id, round_number) -> List[TournamentMatch]:
        return (
            TournamentMatch.query
            .filter_by(tournament_id=tournament_id, round=round_number)
            .order_by(TournamentMatch.match_index)
            .all()
        )

    def list_matches(self, tournament_id) -> List[TournamentMatch]:
        return (
            TournamentMatch.query
            .filter_by(tournament_id=tournament_id)
            .order_by(TournamentMatch.round, TournamentMatch.match_index)
            .all()
        )

    def highest_round(self, tournament_id) -> Optional[int]:
        matches = self.list_matches(tournament_id)
        return max((m.round for m in matches), default=None)

    def seeded_team_ids(self, tournament_id, from_round) -> set:
        seeded = set()
        for match in self.list_matches(tournament_id):
            if match.round >= from_round:
                seeded.update(t for t in (match.team_a_id, match.team_b_id) if t is not None)
        return seeded

    def update_tournament_status(self, tournament_id, status) -> None:
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise MatchNotFound(f'tournament {tournament_id} not found')
        tournament.status = status
        db.session.add(tournament)
        db.session.commit()


@dataclass
class AdvanceResult:
    round_complete: bool = False
    seeded: List[dict] = field(default_factory=list)
    byes: List[dict] = field(default_factory=list)
    unplaced: List[int] = field(default_factory=list)
    tournament_completed: bool = False

    def to_dict(self):
        return {
            'round_complete': self.round_complete,
            'seeded': list(self.seeded),
            'byes': list(self.byes),
            'unplaced': list(self.unplaced),
            'tournament_completed': self.tournament_completed,
        }


def team_for_game_winner(match: TournamentMatch, winner: int) -> Optional[int]:
    """Game team 1 is the match's team A, game team 2 its team B."""
    return match.team_a_id if winner == 1 else match.team_b_id


def _fill_slots(store, matches, teams, one_per_match=False):
    placed = []
    queue = list(teams)
    for match in matches:
        slots = {}
        if match.team_a_id is None and queue:
            slots['team_a_id'] = queue.pop(0)
        if match.team_b_id is None and queue and not (one_per_match and slots):
            slots['team_b_id'] = queue.pop(0)
        if slots:
            store.update_match(match.id, **slots)
            for slot, team_id in slots.items():
                placed.append({'match_id': match.id, 'round': match.round,
                               'match_index': match.match_index, 'slot': slot.split('_')[1], 'team_id': team_id})
    return placed, queue


def _complete_tournament_if_done(store, tournament_id, result):
    highest = store.highest_round(tournament_id)
    if highest is None:
        return
    final_round = store.list_matches_by_round(tournament_id, highest)
    if final_round and all(m.status == COMPLETE and m.winner_team_id for m in final_round):
        store.update_tournament_status(tournament_id, 'completed')
        result.tournament_completed = True
        current_app.logger.info(
            f"[tournament-complete] tournament={tournament_id} champion={final_round[0].winner_team_id}"
        )


def advance_after_game(store: BracketStore, tournament_id, match_id, winner_team_id) -> AdvanceResult:
    result = AdvanceResult()
    match = store.get_match(match_id)
    if match is None:
        raise MatchNotFound(f'match {match_id} not found')

    if match.status == COMPLETE:
        if match.winner_team_id != winner_team_id:
            current_app.logger.warning(
                f"[bracket-complete] tournament={tournament_id} match={match.id} "
                f"keeps winner={match.winner_team_id} ignoring={winner_team_id}"
            )
    else:
        match = store.update_match(match.id, status=COMPLETE, winner_team_id=winner_team_id)
        current_app.logger.info(
            f"[bracket-result] tournament={tournament_id} round={match.round} match={match.match_index} winner={winner_team_id}"
        )

    round_number = match.round
    round_matches = store.list_matches_by_round(tournament_id, round_number)
    completed = [m for m in round_matches if m.status == COMPLETE]
    if len(completed) < len(round_matches):
        current_app.logger.info(
            f"[bracket-round-pending] tournament={tournament_id} round={round_number} "
            f"complete={len(completed)}/{len(round_matches)}"
        )
        return result
    result.round_complete = True

    already_seeded = store.seeded_team_ids(tournament_id, round_number + 1)
    winners = [
        m.winner_team_id for m in round_matches
        if m.winner_team_id and m.winner_team_id not in already_seeded
    ]

    next_round = store.list_matches_by_round(tournament_id, round_number + 1)
    if not next_round:
        _complete_tournament_if_done(store, tournament_id, result)
        return result

    result.seeded, leftover = _fill_slots(store, next_round, winners)
    for entry in result.seeded:
        current_app.logger.info(
            f"[bracket-seed] tournament={tournament_id} round={entry['round']} "
            f"match={entry['match_index']} slot={entry['slot']} team={entry['team_id']}"
        )
    if not leftover:
        return result

    bye_round = store.list_matches_by_round(tournament_id, round_number + 2)
    if not bye_round:
        result.unplaced = leftover
        current_app.logger.error(
            f"[bracket-bye] tournament={tournament_id} round={round_number + 2} missing; unplaced teams={leftover}"
        )
        return result
    result.byes, result.unplaced = _fill_slots(store, bye_round, leftover, one_per_match=True)
    for entry in result.byes:
        current_app.logger.info(
            f"[bracket-bye] tournament={tournament_id} round={entry['round']} "
            f"match={entry['match_index']} slot={entry['slot']} team={entry['team_id']}"
        )
    if result.unplaced:
        current_app.logger.error(
            f"[bracket-bye] tournament={tournament_id} round={round_number + 2} full; unplaced teams={result.unplaced}"
        )
    return result


def plan_rounds(team_count: int) -> List[int]:
    """Number of matches in each round for ``team_count`` entrants.

    An odd entrant sits out the round and joins the next one.
    """
    if team_count < 2:
        raise IllegalAction('a bracket needs at least two teams')
    rounds = []
    entrants = team_count
    while entrants > 1:
        rounds.append(entrants // 2)
        entrants = entrants // 2 + entrants % 2
    return rounds


def build_bracket(tournament: Tournament, team_ids: List[int]) -> List[TournamentMatch]:
    existing = BracketStore().list_matches(tournament.id)
    if existing:
        return existing
    rounds = plan_rounds(len(team_ids))
    matches = []
    for round_number, match_count in enumerate(rounds, start=1):
        for index in range(match_count):
            match = TournamentMatch(
                tournament_id=tournament.id,
                round=round_number,
                match_index=index,
                status=PENDING,
            )
            if round_number == 1:
                match.team_a_id = team_ids[2 * index]
                match.team_b_id = team_ids[2 * index + 1]
            matches.append(match)
    if len(team_ids) % 2:
        # Odd team out waits for the first round-one winner
        second_round = [m for m in matches if m.round == 2]
        second_round[0].team_a_id = team_ids[-1]
    db.session.add_all(matches)
    tournament.status = 'started'
    db.session.add(tournament)
    db.session.commit()
    current_app.logger.info(
        f"[bracket-build] tournament={tournament.id} teams={len(team_ids)} rounds={rounds}"
    )
    return matches


def start_match(match_id):
    """Create (or return) the 6-cup game for a match whose teams are both set."""
    from cupgame.services.games import store as game_store
    from cupgame.services.games.state import TournamentLink

    bracket_store = BracketStore()
    match = bracket_store.get_match(match_id)
    if match is None:
        raise MatchNotFound(f'match {match_id} not found')
    if match.game_id is not None:
        return game_store.get_game(match.game_id)
    if match.status == COMPLETE:
        raise IllegalAction('match is already complete')
    if match.team_a_id is None or match.team_b_id is None:
        raise IllegalAction('both teams must be seeded before the match starts')

    team_a = db.session.get(TournamentTeam, match.team_a_id)
    team_b = db.session.get(TournamentTeam, match.team_b_id)
    game = game_store.create_game(
        team_a.player_entries,
        team_b.player_entries,
        cup_formation=TOURNAMENT_CUP_FORMATION,
        tournament=TournamentLink(match.tournament_id, match.id),
        team1_name=team_a.name,
        team2_name=team_b.name,
    )
    bracket_store.update_match(match.id, game_id=game.id, status=IN_PROGRESS)
    current_app.logger.info(
        f"[match-start] tournament={match.tournament_id} match={match.id} game={game.id}"
    )
    return game
