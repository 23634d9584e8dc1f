import pytest

from conftest import ALICE, BOB, CAROL, STAKE, TIMEOUT, fake_signature

from channel_chess import db
from channel_chess.models import MAX_SEQUENCE_NUMBER, GameSession, Phase
from channel_chess.services.sessions import escrow, lifecycle, moves
from channel_chess.services.sessions.digest import move_digest, state_digest
from channel_chess.services.sessions.errors import (
    AlreadyStarted,
    GameAlreadyStarted,
    InvalidInput,
    InvalidSignature,
    InvalidStake,
    NotParticipant,
    SessionClosed,
    StakeMismatch,
    StaleSequence,
    TimeoutNotReached,
    WrongTurn,
)
from channel_chess.services.sessions.schemas import GameStateModel
from channel_chess.services.leaderboard import get_stats

T0 = 1_700_000_000.0


def _open(now=T0):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=now)
    lifecycle.join_session(session, BOB.address, STAKE, now=now)
    db.session.commit()
    return session


def _signed(session, signer, seq, prior, notation):
    return fake_signature(signer, move_digest(session.code, seq, prior, notation))


def test_create_sets_creator_and_escrow(app_ctx):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    db.session.commit()
    assert session.player1 == ALICE.address
    assert session.phase == Phase.AWAITING_OPPONENT.value
    assert session.last_activity_at == T0
    assert session.escrow_balance == STAKE
    assert escrow.journal_balance(session) == STAKE


@pytest.mark.parametrize('stake, deposit', [(STAKE, STAKE - 1), (0, 0), (-5, -5), (True, True), ('10', '10')])
def test_create_rejects_bad_stakes(app_ctx, stake, deposit):
    with pytest.raises(InvalidStake):
        lifecycle.create_session(ALICE.address, stake, TIMEOUT, deposit, now=T0)
    assert GameSession.query.count() == 0


def test_join_doubles_escrow_and_hands_turn_to_creator(app_ctx):
    session = _open()
    assert session.phase == Phase.ACTIVE.value
    assert session.escrow_balance == 2 * STAKE
    assert escrow.journal_balance(session) == 2 * STAKE
    assert session.turn_holder == ALICE.address

    with pytest.raises(AlreadyStarted):
        lifecycle.join_session(session, CAROL.address, STAKE, now=T0)


def test_join_wrong_deposit_leaves_session_untouched(app_ctx):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    with pytest.raises(StakeMismatch):
        lifecycle.join_session(session, BOB.address, STAKE * 2, now=T0 + 5)
    assert session.player2 is None
    assert session.escrow_balance == STAKE
    assert session.last_activity_at == T0


def test_cancel_rules(app_ctx):
    waiting = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    with pytest.raises(NotParticipant):
        lifecycle.cancel_session(waiting, BOB.address)
    lifecycle.cancel_session(waiting, ALICE.address, now=T0 + 1)
    assert waiting.phase == Phase.CANCELLED.value
    assert waiting.escrow_balance == 0

    active = _open()
    for caller in (ALICE.address, BOB.address, CAROL.address):
        with pytest.raises(GameAlreadyStarted):
            lifecycle.cancel_session(active, caller)


def test_phase_never_regresses(app_ctx):
    session = _open()
    with pytest.raises(RuntimeError):
        lifecycle.advance_phase(session, Phase.AWAITING_OPPONENT)


def test_direct_moves_alternate(app_ctx):
    session = _open()
    moves.move(session, ALICE.address, 0, 'e4', now=T0 + 1)
    with pytest.raises(WrongTurn):
        moves.move(session, ALICE.address, 1, 'd4', now=T0 + 2)
    with pytest.raises(StaleSequence):
        moves.move(session, BOB.address, 0, 'e5', now=T0 + 2)
    moves.move(session, BOB.address, 1, 'e5', now=T0 + 2)
    assert session.sequence_number == 1
    assert session.transcript == 'e4 e5'
    assert session.turn_holder == ALICE.address
    assert session.last_activity_at == T0 + 2


def test_signed_and_direct_paths_interleave(app_ctx, fake_verifier):
    session = _open()
    moves.move(session, ALICE.address, 0, 'e4', now=T0 + 1)
    # Bob signed e5 off-path; Alice redeems it
    moves.move_from_state(session, ALICE.address, 1, 'e4', _signed(session, BOB.address, 1, 'e4', 'e5'), 'e5',
                          fake_verifier, now=T0 + 2)
    moves.move(session, ALICE.address, 2, 'Nf3', now=T0 + 3)
    assert session.transcript == 'e4 e5 Nf3'
    assert session.sequence_number == 2
    assert session.turn_holder == BOB.address
    assert [m.path for m in session.moves] == ['direct', 'signed', 'direct']


def test_signed_move_wrong_signer(app_ctx, fake_verifier):
    session = _open()
    with pytest.raises(InvalidSignature):
        moves.move_from_state(session, BOB.address, 0, '', _signed(session, BOB.address, 0, '', 'e4'), 'e4', fake_verifier)
    assert session.sequence_number == -1


def test_signed_move_replay_is_stale(app_ctx, fake_verifier):
    session = _open()
    signature = _signed(session, ALICE.address, 0, '', 'e4')
    moves.move_from_state(session, BOB.address, 0, '', signature, 'e4', fake_verifier, now=T0 + 1)
    with pytest.raises(StaleSequence):
        moves.move_from_state(session, BOB.address, 0, '', signature, 'e4', fake_verifier, now=T0 + 2)
    assert session.last_activity_at == T0 + 1


def test_signed_move_respects_turn_holder(app_ctx, fake_verifier):
    session = _open()
    # A resync that leaves Alice on turn at an odd slot
    moves.set_state(session, BOB.address, GameStateModel(
        sequence_number=0, transcript='e4', turn_holder=ALICE.address, is_terminal=False,
    ), now=T0 + 1)
    with pytest.raises(WrongTurn):
        moves.move_from_state(session, ALICE.address, 1, 'e4', _signed(session, BOB.address, 1, 'e4', 'e5'), 'e5',
                              fake_verifier)


def test_signed_move_from_outsider(app_ctx, fake_verifier):
    session = _open()
    with pytest.raises(NotParticipant):
        moves.move_from_state(session, CAROL.address, 0, '', _signed(session, ALICE.address, 0, '', 'e4'), 'e4',
                              fake_verifier)


def test_terminal_set_state_settles(app_ctx, fake_verifier):
    session = _open()
    final = GameStateModel(sequence_number=7, transcript='f3 e5 g4 Qh4#', turn_holder=ALICE.address,
                           is_terminal=True, winner=BOB.address)
    digest = state_digest(session.code, final)
    with pytest.raises(InvalidSignature):
        moves.set_state(session, BOB.address, final, signature=fake_signature(BOB.address, digest), verifier=fake_verifier)
    moves.set_state(session, BOB.address, final, signature=fake_signature(ALICE.address, digest),
                    verifier=fake_verifier, now=T0 + 9)
    assert session.phase == Phase.COMPLETED.value
    assert session.is_terminal
    assert session.winner == BOB.address
    assert session.escrow_balance == 0
    assert escrow.journal_balance(session) == 0
    assert get_stats(BOB.address) == (1, 0)
    assert get_stats(ALICE.address) == (0, 1)

    with pytest.raises(SessionClosed):
        moves.set_state(session, ALICE.address, GameStateModel(
            sequence_number=8, transcript='', turn_holder=ALICE.address, is_terminal=False,
        ))


def test_timeout_boundaries(app_ctx):
    session = _open()
    moves.move(session, ALICE.address, 0, 'e4', now=T0 + 10)
    # Bob is on turn; Alice waits
    with pytest.raises(TimeoutNotReached):
        lifecycle.resolve_timeout(session, ALICE.address, now=T0 + 10 + TIMEOUT)
    with pytest.raises(WrongTurn):
        lifecycle.resolve_timeout(session, BOB.address, now=T0 + 10 + TIMEOUT + 1)
    with pytest.raises(NotParticipant):
        lifecycle.resolve_timeout(session, CAROL.address, now=T0 + 10 + TIMEOUT + 1)

    lifecycle.resolve_timeout(session, ALICE.address, now=T0 + 10 + TIMEOUT + 1)
    assert session.phase == Phase.COMPLETED.value
    assert session.resolution == 'timeout'
    assert session.winner == ALICE.address
    payout = session.transfers.all()[-1]
    assert (payout.identity, payout.amount, payout.kind) == (ALICE.address, -2 * STAKE, 'payout')

    with pytest.raises(SessionClosed):
        lifecycle.resolve_timeout(session, ALICE.address, now=T0 + 10 * TIMEOUT)


def test_escrow_never_overdrawn(app_ctx):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    with pytest.raises(RuntimeError):
        escrow.release(session, ALICE.address, STAKE + 1, 'refund', T0)
    assert session.escrow_balance == STAKE


def test_join_stores_checksummed_address(app_ctx):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    lifecycle.join_session(session, BOB.address.lower(), STAKE, now=T0)
    assert session.player2 == BOB.address
    assert session.is_participant(BOB.address)
    assert session.counterpart(ALICE.address) == BOB.address
    assert session.transfers.all()[-1].identity == BOB.address
    moves.move(session, ALICE.address, 0, 'e4', now=T0 + 1)
    moves.move(session, BOB.address, 1, 'e5', now=T0 + 2)


def test_join_rejects_non_address(app_ctx):
    session = lifecycle.create_session(ALICE.address, STAKE, TIMEOUT, STAKE, now=T0)
    with pytest.raises(InvalidInput):
        lifecycle.join_session(session, 'bob', STAKE, now=T0)
    with pytest.raises(InvalidInput):
        lifecycle.join_session(session, ALICE.address.lower(), STAKE, now=T0)
    assert session.player2 is None


def test_direct_move_stops_at_largest_sequence(app_ctx):
    session = _open()
    moves.set_state(session, ALICE.address, GameStateModel(
        sequence_number=MAX_SEQUENCE_NUMBER, transcript='e4', turn_holder=ALICE.address, is_terminal=False,
    ), now=T0 + 1)
    db.session.commit()
    with pytest.raises(StaleSequence):
        moves.move(session, ALICE.address, MAX_SEQUENCE_NUMBER + 1, 'e5', now=T0 + 2)
    assert session.sequence_number == MAX_SEQUENCE_NUMBER
