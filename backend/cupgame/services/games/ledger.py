"""Append-only score ledger.

Rows are written once per state-changing action and never updated or
deleted. Payloads are validated against the event type before writing.
"""

import json
from typing import List, Optional

from pydantic import ValidationError

from cupgame import db
from cupgame.errors import InvalidScoreEvent
from cupgame.models import ScoreEvent
from .events import EVENT_TYPES, PAYLOAD_KINDS, ScoreSnapshot, dump_payload, parse_payload


def validate_event(event_type: str, team_number: int, payload, snapshot: ScoreSnapshot) -> None:
    if event_type not in EVENT_TYPES:
        raise InvalidScoreEvent(f'unknown event type {event_type!r}')
    if team_number not in (1, 2):
        raise InvalidScoreEvent(f'team number must be 1 or 2, got {team_number!r}')
    kind = getattr(payload, 'kind', None)
    if kind != PAYLOAD_KINDS[event_type]:
        raise InvalidScoreEvent(f'{event_type} event cannot carry a {kind!r} payload')
    if event_type == 'island' and not payload.island:
        raise InvalidScoreEvent('island event must be an island hit')
    if event_type == 'shot_hit' and payload.island:
        raise InvalidScoreEvent('island hits are logged as island events')
    if snapshot.team1_score + snapshot.team1_cups != snapshot.team2_score + snapshot.team2_cups:
        raise InvalidScoreEvent('score snapshot does not add up to one cup formation')


def snapshot_for(total_cups: int, team1_score: int, team2_score: int) -> ScoreSnapshot:
    try:
        return ScoreSnapshot.from_scores(total_cups, team1_score, team2_score)
    except ValidationError as exc:
        raise InvalidScoreEvent(f'invalid score snapshot: {exc}') from exc


def append_event(game, event_type: str, team_number: int, player_id: Optional[int],
                 payload, team1_score: int, team2_score: int) -> ScoreEvent:
    snapshot = snapshot_for(game.total_cups_per_team, team1_score, team2_score)
    validate_event(event_type, team_number, payload, snapshot)
    event = ScoreEvent(
        game_id=game.id,
        player_id=player_id,
        event_type=event_type,
        team_number=team_number,
        team1_cups=snapshot.team1_cups,
        team2_cups=snapshot.team2_cups,
        team1_score=snapshot.team1_score,
        team2_score=snapshot.team2_score,
        event_data=dump_payload(payload),
    )
    db.session.add(event)
    db.session.commit()
    return event


def events_for(game_id: int) -> List[ScoreEvent]:
    return ScoreEvent.query.filter_by(game_id=game_id).order_by(ScoreEvent.id).all()


def payload_of(event: ScoreEvent):
    return parse_payload(json.loads(event.event_data)) if event.event_data else None


def last_drinking_player(game_id: int) -> Optional[str]:
    """Name of the player who was last told to drink, if any."""
    rows = (
        ScoreEvent.query
        .filter(ScoreEvent.game_id == game_id)
        .filter(ScoreEvent.event_type.in_(('shot_hit', 'island', 'catch', 'redemption_end')))
        .order_by(ScoreEvent.id.desc())
        .all()
    )
    for row in rows:
        payload = payload_of(row)
        drinker = getattr(payload, 'drinking_player', None)
        if drinker:
            return drinker
    return None
