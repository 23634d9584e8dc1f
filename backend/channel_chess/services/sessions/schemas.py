"""Request records validated at the API boundary."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from channel_chess.crypto import normalize_address
from channel_chess.models import MAX_SEQUENCE_NUMBER


class GameStateModel(BaseModel):
    """Full game state as written by ``set_state``; every field is required but ``winner``."""
    model_config = ConfigDict(extra='forbid', strict=True, frozen=True)

    sequence_number: int = Field(ge=0, le=MAX_SEQUENCE_NUMBER)
    transcript: str
    turn_holder: str
    is_terminal: bool
    winner: Optional[str] = None

    @field_validator('turn_holder')
    @classmethod
    def _checksum_turn_holder(cls, value):
        address = normalize_address(value)
        if address is None:
            raise ValueError('turn_holder must be an address')
        return address

    @field_validator('winner')
    @classmethod
    def _checksum_winner(cls, value):
        if value is None:
            return None
        address = normalize_address(value)
        if address is None:
            raise ValueError('winner must be an address')
        return address


class SignedMoveModel(BaseModel):
    model_config = ConfigDict(extra='forbid', strict=True)

    sequence_number: int = Field(ge=0, le=MAX_SEQUENCE_NUMBER)
    prior_transcript: str
    move: str = Field(min_length=1)
    signature: str = Field(min_length=1)
