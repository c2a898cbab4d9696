from cupgame.services.games.state import (
    AdvanceBracket,
    AppendScoreEvent,
    BroadcastState,
    CallIsland,
    CheckConsistency,
    CloseUndoWindow,
    CompleteGame,
    FinalizeStats,
    OpenUndoWindow,
    PersistGame,
    PlayerRef,
    PublishUIEvent,
    RecordCatch,
    RecordHit,
    RecordMiss,
    TeamState,
    TournamentLink,
    Undo,
    new_game,
    reduce,
    rejection_reason,
)


def _players(prefix, count, first_id):
    return tuple(PlayerRef(id=first_id + i, name=f"{prefix}{i}") for i in range(count))


def make_state(total=6, team1_size=2, team2_size=2, **kwargs):
    return new_game(
        total,
        TeamState('Team 1', _players('A', team1_size, 1)),
        TeamState('Team 2', _players('B', team2_size, 101)),
        **kwargs,
    )


def run(state, *actions):
    for action in actions:
        state, _ = reduce(state, action)
    return state


def types_of(effects):
    return [type(e) for e in effects]


def test_three_hits_score_three_and_keep_turn():
    state = run(make_state(), RecordHit(), RecordHit(), RecordHit())
    assert state.team1.score == 3
    assert state.team2.score == 0
    assert state.current_team == 1
    assert state.current_player_index == 0


def test_score_never_exceeds_cup_count():
    state = make_state()
    actions = [RecordHit(), RecordHit(), RecordMiss(), RecordHit(), RecordMiss()] * 10
    for action in actions:
        state, _ = reduce(state, action)
        assert 0 <= state.team1.score <= 6
        assert 0 <= state.team2.score <= 6
    assert state.status == 'completed'


def test_hit_to_cap_enters_redemption_for_opponent():
    state = run(make_state(), *[RecordHit()] * 5)
    state, effects = reduce(state, RecordHit())
    assert state.team1.score == 6
    assert state.status == 'active'
    assert state.redemption.redemption_team == 2
    assert state.redemption.winning_team == 1
    assert state.current_team == 2
    event_types = [e.event_type for e in effects if isinstance(e, AppendScoreEvent)]
    assert event_types == ['shot_hit', 'redemption_start']
    assert CloseUndoWindow in types_of(effects)
    assert OpenUndoWindow not in types_of(effects)


def test_redemption_miss_completes_for_challenged_team():
    state = run(make_state(), *[RecordHit()] * 6)
    state, effects = reduce(state, RecordMiss())
    assert state.status == 'completed'
    assert state.winner == 1
    assert state.team1.score == 6
    assert state.redemption is None
    assert 2 in state.redemption_used
    assert FinalizeStats(1) in effects
    assert any(isinstance(e, PublishUIEvent) and e.type == 'confetti' for e in effects)


def test_redemption_hit_voids_a_cup_and_returns_play():
    state = run(make_state(), *[RecordHit()] * 6)
    state, effects = reduce(state, RecordHit())
    assert state.status == 'active'
    assert state.team1.score == 5
    assert state.team2.score == 0
    assert state.redemption is None
    assert state.redemption_used == frozenset({2})
    assert state.current_team == 1
    # player 0 scored the winning cup, so the next team-1 player shoots
    assert state.current_player_index == 1
    ends = [e for e in effects if isinstance(e, AppendScoreEvent) and e.event_type == 'redemption_end']
    assert ends and ends[0].payload.successful is True


def test_redemption_is_granted_once_per_team():
    state = run(make_state(), *[RecordHit()] * 7)
    assert state.team1.score == 5
    state, _ = reduce(state, RecordHit())
    assert state.status == 'completed'
    assert state.winner == 1
    assert state.redemption is None


def test_catch_during_redemption_completes_for_challenged_team():
    state = run(make_state(), *[RecordHit()] * 6)
    state, effects = reduce(state, RecordCatch(catcher_index=1))
    assert state.status == 'completed'
    assert state.winner == 1
    assert 2 in state.redemption_used
    catches = [e for e in effects if isinstance(e, AppendScoreEvent) and e.event_type == 'catch']
    assert catches[0].player_id == 2


def test_island_doubles_next_hit_and_is_consumed():
    state = make_state()
    state, effects = reduce(state, CallIsland(player_id=1))
    assert state.island_active
    assert PersistGame() in effects
    assert OpenUndoWindow not in types_of(effects)
    assert CloseUndoWindow not in types_of(effects)

    state, effects = reduce(state, RecordHit())
    assert state.team1.score == 2
    assert not state.island_active
    hit = [e for e in effects if isinstance(e, AppendScoreEvent)][0]
    assert hit.event_type == 'island'
    assert hit.payload.points == 2

    state, _ = reduce(state, RecordHit())
    assert state.team1.score == 3
    assert not state.island_active


def test_island_is_once_per_player():
    state = run(make_state(), CallIsland(player_id=1), RecordMiss(), RecordMiss(), RecordMiss(), RecordMiss())
    assert state.current_player.id == 1
    assert rejection_reason(state, CallIsland(player_id=1)) == 'island already called by this player'
    unchanged, effects = reduce(state, CallIsland(player_id=1))
    assert unchanged is state
    assert effects == []


def test_island_only_for_current_shooter():
    state = make_state()
    assert rejection_reason(state, CallIsland(player_id=2)) is not None
    assert rejection_reason(state, CallIsland(player_id=101)) is not None


def test_island_not_allowed_on_match_point_or_in_redemption():
    state = run(make_state(), *[RecordHit()] * 5)
    assert rejection_reason(state, CallIsland(player_id=1)) == 'island is not allowed on match point'
    state = run(state, RecordHit())
    shooter = state.current_player
    assert rejection_reason(state, CallIsland(player_id=shooter.id)) == 'island is not allowed during redemption'


def test_island_miss_clears_flag():
    state = run(make_state(), CallIsland(player_id=1), RecordMiss())
    assert not state.island_active
    assert state.team1.score == 0


def test_undo_hands_back_unused_island_call():
    state = make_state()
    before_miss = state.snapshot()
    state = run(state, RecordMiss(), CallIsland(player_id=101))
    assert state.island_active

    state = run(state, Undo(before_miss))
    assert state.current_player.id == 1
    assert state.island_player_id is None
    assert not state.island_active
    assert 101 not in state.island_calls

    state, effects = reduce(state, RecordHit())
    assert state.team1.score == 1
    hit = [e for e in effects if isinstance(e, AppendScoreEvent)][0]
    assert hit.event_type == 'shot_hit'


def test_island_only_applies_to_its_caller():
    state = make_state(island_player_id=101, island_calls=frozenset({101}))
    assert state.current_player.id == 1
    assert not state.island_active
    state, _ = reduce(state, RecordHit())
    assert state.team1.score == 1


def test_catch_rejected_on_match_point():
    state = run(make_state(), *[RecordHit()] * 5)
    after, effects = reduce(state, RecordCatch())
    assert after is state
    assert effects == []


def test_catch_awards_one_cup_and_switches_turn():
    state = run(make_state(), *[RecordHit()] * 4)
    state, effects = reduce(state, RecordCatch(catcher_index=1))
    assert state.team1.score == 4
    assert state.team2.score == 1
    assert state.current_team == 2
    catch = [e for e in effects if isinstance(e, AppendScoreEvent)][0]
    assert catch.player_id == 102
    assert catch.payload.drinking_player == 'A0'


def test_catch_reaching_cap_completes_without_redemption():
    state = run(make_state(), RecordMiss(), *[RecordHit()] * 5, RecordMiss())
    assert state.team2.score == 5
    assert state.current_team == 1
    state, _ = reduce(state, RecordCatch())
    assert state.status == 'completed'
    assert state.winner == 2
    assert state.team2.score == 6


def test_miss_rotation_alternates_two_player_teams():
    state = make_state()
    shooters = []
    for _ in range(6):
        shooters.append(state.current_player.name)
        state, _ = reduce(state, RecordMiss())
    assert shooters == ['A0', 'B0', 'A1', 'B1', 'A0', 'B0']


def test_miss_rotation_cycles_larger_teams():
    state = make_state(team1_size=3, team2_size=1)
    shooters = []
    for _ in range(8):
        shooters.append(state.current_player.name)
        state, _ = reduce(state, RecordMiss())
    assert shooters == ['A0', 'B0', 'A1', 'B0', 'A2', 'B0', 'A0', 'B0']


def test_drinkers_rotate_through_opposing_team():
    state = make_state()
    drinkers = []
    for _ in range(3):
        state, effects = reduce(state, RecordHit())
        hit = [e for e in effects if isinstance(e, AppendScoreEvent)][0]
        drinkers.append(hit.payload.drinking_player)
    assert drinkers == ['B0', 'B1', 'B0']


def test_hit_opens_undo_window_with_previous_turn():
    state = run(make_state(), RecordHit())
    before = state.snapshot()
    state, effects = reduce(state, RecordHit())
    opened = [e for e in effects if isinstance(e, OpenUndoWindow)]
    assert opened == [OpenUndoWindow(before)]
    kinds = types_of(effects)
    assert kinds.index(PersistGame) < kinds.index(BroadcastState)


def test_undo_restores_scores_and_turn():
    state = run(make_state(), RecordHit(), RecordMiss())
    snapshot = state.snapshot()
    state = run(state, RecordHit(), RecordMiss())
    assert state.team2.score == 1
    state, effects = reduce(state, Undo(snapshot))
    assert state.team1.score == 1
    assert state.team2.score == 0
    assert state.current_team == 2
    assert state.current_player.name == 'B0'
    assert any(isinstance(e, PublishUIEvent) and e.type == 'undo' for e in effects)
    # rotation continues from the restored shooter
    state, _ = reduce(state, RecordMiss())
    assert state.current_player.name == 'A1'


def test_complete_game_is_idempotent():
    state, effects = reduce(make_state(), CompleteGame(winner=2))
    assert state.status == 'completed'
    assert state.winner == 2
    assert [e.event_type for e in effects if isinstance(e, AppendScoreEvent)] == ['game_end']
    again, effects = reduce(state, CompleteGame(winner=2))
    assert again == state
    assert effects == []


def test_actions_on_completed_game_are_rejected():
    state = run(make_state(), CompleteGame(winner=1))
    assert rejection_reason(state, RecordHit()) == 'game is completed'
    assert reduce(state, RecordMiss()) == (state, [])


def test_tournament_game_completion_advances_bracket():
    link = TournamentLink(tournament_id=3, match_id=9)
    state = make_state(tournament=link)
    state, effects = reduce(state, CompleteGame(winner=1))
    assert effects[-1] == AdvanceBracket(link, 1)


def test_casual_game_completion_does_not_touch_bracket():
    _, effects = reduce(make_state(), CompleteGame(winner=1))
    assert AdvanceBracket not in types_of(effects)


def test_consistency_check_completes_over_cap_team():
    state = make_state()
    state = state.with_team(2, score=8)
    healed, effects = reduce(state, CheckConsistency())
    assert healed.status == 'completed'
    assert healed.winner == 2
    assert healed.team2.score == 6
    assert FinalizeStats(2) in effects


def test_consistency_check_is_quiet_for_healthy_games():
    state = run(make_state(), RecordHit())
    assert reduce(state, CheckConsistency()) == (state, [])
