"""Typed payloads for score events.

Every ledger row carries exactly one of these payloads, tagged by ``kind``.
An ``island`` event is a :class:`ShotHit` with ``island=True``.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

EVENT_TYPES = (
    'shot_hit',
    'shot_miss',
    'catch',
    'island',
    'redemption_start',
    'redemption_end',
    'game_start',
    'game_end',
)

# event_type -> payload kind it must carry
PAYLOAD_KINDS = {
    'shot_hit': 'shot_hit',
    'island': 'shot_hit',
    'shot_miss': 'shot_miss',
    'catch': 'catch',
    'redemption_start': 'redemption_start',
    'redemption_end': 'redemption_end',
    'game_start': 'game_start',
    'game_end': 'game_end',
}


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class GameStart(_Payload):
    kind: Literal['game_start'] = 'game_start'
    total_cups: int


class ShotHit(_Payload):
    kind: Literal['shot_hit'] = 'shot_hit'
    points: int = 1
    island: bool = False
    opposing_team: int
    drinking_player: Optional[str] = None


class ShotMiss(_Payload):
    kind: Literal['shot_miss'] = 'shot_miss'
    island: bool = False
    redemption: bool = False


class Catch(_Payload):
    kind: Literal['catch'] = 'catch'
    catcher: str
    shooting_team: int
    drinking_player: Optional[str] = None


class RedemptionStart(_Payload):
    kind: Literal['redemption_start'] = 'redemption_start'
    winning_team: int
    redemption_team: int


class RedemptionEnd(_Payload):
    kind: Literal['redemption_end'] = 'redemption_end'
    successful: bool
    redemption_team: int
    voided_team: Optional[int] = None
    winning_team: Optional[int] = None
    drinking_player: Optional[str] = None


class GameEnd(_Payload):
    kind: Literal['game_end'] = 'game_end'
    winner: int


EventPayload = Annotated[
    Union[GameStart, ShotHit, ShotMiss, Catch, RedemptionStart, RedemptionEnd, GameEnd],
    Field(discriminator='kind'),
]

_payload_adapter = TypeAdapter(EventPayload)


class ScoreSnapshot(BaseModel):
    """Remaining cups and scores of both teams at event time."""
    model_config = ConfigDict(frozen=True)

    team1_cups: int = Field(ge=0)
    team2_cups: int = Field(ge=0)
    team1_score: int = Field(ge=0)
    team2_score: int = Field(ge=0)

    @classmethod
    def from_scores(cls, total_cups: int, team1_score: int, team2_score: int) -> 'ScoreSnapshot':
        return cls(
            team1_cups=total_cups - team1_score,
            team2_cups=total_cups - team2_score,
            team1_score=team1_score,
            team2_score=team2_score,
        )


def parse_payload(data):
    """Rebuild a typed payload from its stored dict form."""
    return _payload_adapter.validate_python(data)


def dump_payload(payload) -> str:
    return payload.model_dump_json()
