"""Canonical digests for signed session updates.

Fields are ABI encoded (head/tail layout, every dynamic field length
prefixed) rather than concatenated, so no two distinct payloads share an
encoding -- ``("e4", "e5 Nf3")`` and ``("e4 e5", "Nf3")`` hash differently.
A leading tag keeps move digests and state digests apart.
"""

from eth_abi import encode
from eth_utils import keccak

from channel_chess.crypto import ZERO_ADDRESS

MOVE_TAG = 'channel-chess/move/v1'
STATE_TAG = 'channel-chess/state/v1'

MOVE_PAYLOAD_TYPES = ['string', 'string', 'uint256', 'string', 'string']
STATE_PAYLOAD_TYPES = ['string', 'string', 'uint256', 'string', 'address', 'bool', 'address']


def encode_move_payload(session_code: str, sequence_number: int, prior_transcript: str, move_notation: str) -> bytes:
    return encode(MOVE_PAYLOAD_TYPES, [MOVE_TAG, session_code, sequence_number, prior_transcript, move_notation])


def move_digest(session_code: str, sequence_number: int, prior_transcript: str, move_notation: str) -> bytes:
    return keccak(encode_move_payload(session_code, sequence_number, prior_transcript, move_notation))


def encode_state_payload(session_code: str, state) -> bytes:
    return encode(STATE_PAYLOAD_TYPES, [
        STATE_TAG,
        session_code,
        state.sequence_number,
        state.transcript,
        state.turn_holder,
        state.is_terminal,
        state.winner or ZERO_ADDRESS,
    ])


def state_digest(session_code: str, state) -> bytes:
    """Digest the counterpart signs to agree on a full game state."""
    return keccak(encode_state_payload(session_code, state))
