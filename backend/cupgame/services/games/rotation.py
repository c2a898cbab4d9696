"""Per-team rotations for who shoots next and who drinks next.

Each team keeps its own counters, so one team's rotation never depends on
the other's: a two-player team alternates A, B, A, B whatever the opponent
does, and larger teams cycle through every player in order.
"""

from dataclasses import replace


def other_team(team: int) -> int:
    return 2 if team == 1 else 1


def next_shooter_index(team_state) -> int:
    return (team_state.last_index + 1) % len(team_state.players)


def pass_turn(state, team: int):
    """Hand the turn to ``team``'s next shooter."""
    index = next_shooter_index(state.team(team))
    state = state.with_team(team, last_index=index)
    return replace(state, current_team=team, current_player_index=index)


def return_turn(state, team: int, index: int):
    """Hand the turn to ``team`` at a specific index (after a redemption)."""
    state = state.with_team(team, last_index=index)
    return replace(state, current_team=team, current_player_index=index)


def next_drinker(state, team: int):
    """Return ``(state, player)`` with ``team``'s drink counter advanced."""
    team_state = state.team(team)
    index = team_state.drink_index % len(team_state.players)
    player = team_state.players[index]
    state = state.with_team(team, drink_index=(index + 1) % len(team_state.players))
    return state, player
