import pytest

from cupgame.errors import InvalidScoreEvent
from cupgame.models import Game
from cupgame.services.games import ledger
from cupgame.services.games.events import (
    Catch,
    GameEnd,
    RedemptionStart,
    ShotHit,
    ShotMiss,
    parse_payload,
)


def test_snapshot_counts_remaining_cups():
    snap = ledger.snapshot_for(6, 2, 5)
    assert (snap.team1_cups, snap.team2_cups) == (4, 1)


def test_snapshot_rejects_scores_over_cap():
    with pytest.raises(InvalidScoreEvent):
        ledger.snapshot_for(6, 7, 0)


def test_validate_rejects_unknown_type():
    with pytest.raises(InvalidScoreEvent):
        ledger.validate_event('bounce', 1, ShotMiss(), ledger.snapshot_for(6, 0, 0))


def test_validate_rejects_bad_team_number():
    with pytest.raises(InvalidScoreEvent):
        ledger.validate_event('shot_miss', 3, ShotMiss(), ledger.snapshot_for(6, 0, 0))


def test_validate_rejects_mismatched_payload():
    with pytest.raises(InvalidScoreEvent):
        ledger.validate_event('catch', 1, ShotMiss(), ledger.snapshot_for(6, 0, 0))


def test_island_events_must_be_island_hits():
    snap = ledger.snapshot_for(6, 2, 0)
    ledger.validate_event('island', 1, ShotHit(points=2, island=True, opposing_team=2), snap)
    with pytest.raises(InvalidScoreEvent):
        ledger.validate_event('island', 1, ShotHit(opposing_team=2), snap)
    with pytest.raises(InvalidScoreEvent):
        ledger.validate_event('shot_hit', 1, ShotHit(points=2, island=True, opposing_team=2), snap)


def test_payload_round_trips_through_kind_tag():
    payload = parse_payload({'kind': 'redemption_start', 'winning_team': 1, 'redemption_team': 2})
    assert payload == RedemptionStart(winning_team=1, redemption_team=2)


def _game():
    from cupgame import db
    game = Game(cup_formation='6', total_cups_per_team=6)
    db.session.add(game)
    db.session.commit()
    return game


def test_append_event_writes_snapshot(flask_app):
    game = _game()
    event = ledger.append_event(game, 'shot_hit', 1, None, ShotHit(opposing_team=2, drinking_player='Cara'), 1, 0)
    data = event.to_dict()
    assert data['score_after_event'] == {
        'team1_cups': 5, 'team2_cups': 6, 'team1_score': 1, 'team2_score': 0,
    }
    assert data['event_data']['kind'] == 'shot_hit'
    assert [e.id for e in ledger.events_for(game.id)] == [event.id]


def test_invalid_event_is_not_written(flask_app):
    game = _game()
    with pytest.raises(InvalidScoreEvent):
        ledger.append_event(game, 'game_end', 1, None, ShotMiss(), 6, 0)
    assert ledger.events_for(game.id) == []


def test_last_drinking_player_uses_latest_named_drinker(flask_app):
    game = _game()
    ledger.append_event(game, 'shot_hit', 1, None, ShotHit(opposing_team=2, drinking_player='Cara'), 1, 0)
    ledger.append_event(game, 'catch', 2, None, Catch(catcher='Dan', shooting_team=1, drinking_player='Bob'), 1, 1)
    ledger.append_event(game, 'game_end', 1, None, GameEnd(winner=1), 1, 1)
    assert ledger.last_drinking_player(game.id) == 'Bob'
