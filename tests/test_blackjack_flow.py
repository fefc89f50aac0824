import asyncio

import pytest

from casinobot.core.config import BlackjackSettings
from casinobot.domain.blackjack import BlackjackFlow, BlackjackResult, SettlementError, Wager, create_game
from casinobot.domain.blackjack import flow as flow_module
from casinobot.domain.common import Err, ErrorKind, Ok
from casinobot.domain.game_bias import Outcome
from casinobot.domain.wallets import LedgerService, TransactionType
from tests.conftest import ALICE, BOB, COMMUNITY, FixedRandom, ScriptedDealer, deck

# player 10+6, dealer 9+7; nothing resolved at the deal
OPEN_HAND = ("10", "6", "9", "7", "2", "3", "4", "5")


async def _balance(ledger, member=ALICE):
    return (await ledger.get_balance(COMMUNITY, member)).balance


async def _types(ledger, member=ALICE):
    return [row.type for row in await ledger.list_transactions(COMMUNITY, member, limit=100)]


async def test_dealer_win_keeps_stake_and_extends_streak(flow, ledger, bias, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("9", "7", "A", "K")

    result = await flow.start_round(COMMUNITY, ALICE, 100)

    assert isinstance(result, Ok)
    view = result.value
    assert view.finished
    assert view.summary.result is BlackjackResult.DEALER_WIN
    assert view.settlement.payout == 0
    assert view.settlement.net_change == -100
    assert view.settlement.balance == 0
    assert await _balance(ledger) == 0
    assert await bias.ensure_bias(COMMUNITY, ALICE, "blackjack") == 1
    assert flow.sessions.get_active_session_for_user(COMMUNITY, ALICE) is None


async def test_push_returns_stake_and_keeps_streak(flow, ledger, bias, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    await bias.record_outcome(COMMUNITY, ALICE, "blackjack", Outcome.DEALER)
    dealer.add("A", "K", "A", "Q")

    result = await flow.start_round(COMMUNITY, ALICE, 100)

    settlement = result.value.settlement
    assert result.value.summary.result is BlackjackResult.PUSH
    assert settlement.payout == 100
    assert settlement.net_change == 0
    assert await _balance(ledger) == 100
    assert await bias.ensure_bias(COMMUNITY, ALICE, "blackjack") == 1
    assert (await _types(ledger))[0] == TransactionType.ADJUST.value


async def test_player_natural_pays_two_and_a_half(flow, ledger, bias, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    await bias.record_outcome(COMMUNITY, ALICE, "blackjack", Outcome.DEALER)
    dealer.add("A", "K", "9", "7")

    result = await flow.start_round(COMMUNITY, ALICE, 10)

    assert result.value.settlement.payout == 25
    assert result.value.settlement.net_change == 15
    assert await _balance(ledger) == 115
    assert await bias.ensure_bias(COMMUNITY, ALICE, "blackjack") == 0


async def test_bet_without_funds_is_refused(flow, ledger, dealer):
    dealer.add(*OPEN_HAND)

    result = await flow.start_round(COMMUNITY, ALICE, 50)

    assert isinstance(result, Err)
    assert result.error.kind is ErrorKind.INSUFFICIENT_FUNDS
    assert result.error.context == {"current": 0, "required": 50}
    assert dealer.calls == 0
    assert len(flow.sessions) == 0


@pytest.mark.parametrize("bet", [-1, 2.5, True])
async def test_malformed_bet_is_refused(flow, bet):
    result = await flow.start_round(COMMUNITY, ALICE, bet)
    assert result.error.kind is ErrorKind.INVALID_AMOUNT


async def test_second_round_returns_the_active_session(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add(*OPEN_HAND).add(*OPEN_HAND)

    first = await flow.start_round(COMMUNITY, ALICE, 10)
    second = await flow.start_round(COMMUNITY, ALICE, 10)

    assert isinstance(first, Ok)
    assert not first.value.finished
    assert second.error.kind is ErrorKind.SESSION_ACTIVE
    assert second.error.context["session_id"] == first.value.session_id
    assert flow.sessions.get_active_session_for_user(COMMUNITY, ALICE).id == first.value.session_id
    assert await _balance(ledger) == 90


async def test_racing_round_starts_refund_the_loser(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add(*OPEN_HAND).add(*OPEN_HAND)

    results = await asyncio.gather(
        flow.start_round(COMMUNITY, ALICE, 10),
        flow.start_round(COMMUNITY, ALICE, 10),
    )

    assert sorted(r.ok for r in results) == [False, True]
    loser = next(r for r in results if not r.ok)
    assert loser.error.kind is ErrorKind.SESSION_ACTIVE
    assert len(flow.sessions) == 1
    assert await _balance(ledger) == 90


async def test_hit_then_stand_settles_a_win(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    # player 10+6 hits a 2 (18); dealer 9+7 draws a K and busts
    dealer.add("10", "6", "9", "7", "2", "K")

    started = await flow.start_round(COMMUNITY, ALICE, 10)
    session_id = started.value.session_id

    after_hit = await flow.act(session_id, ALICE, "hit")
    assert after_hit.value.summary.player.value == 18
    assert not after_hit.value.finished

    after_stand = await flow.act(session_id, ALICE, "stand")
    assert after_stand.value.summary.result is BlackjackResult.PLAYER_WIN
    assert after_stand.value.settlement.payout == 20
    assert after_stand.value.settlement.balance == 110
    assert session_id not in flow.sessions


async def test_action_after_finish_is_rejected(flow, ledger, dealer):
    dealer.add("10", "6", "9", "7", "K")
    started = await flow.start_round(COMMUNITY, ALICE)
    session_id = started.value.session_id

    busted = await flow.act(session_id, ALICE, "hit")
    assert busted.value.summary.result is BlackjackResult.DEALER_WIN

    again = await flow.act(session_id, ALICE, "hit")
    assert again.error.kind is ErrorKind.SESSION_NOT_FOUND


async def test_duplicate_stand_settles_once(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("10", "8", "10", "6", "K")
    started = await flow.start_round(COMMUNITY, ALICE, 10)
    session_id = started.value.session_id

    first, second = await asyncio.gather(
        flow.act(session_id, ALICE, "stand"),
        flow.act(session_id, ALICE, "stand"),
    )

    assert first.ok
    assert second.error.kind is ErrorKind.GAME_FINISHED
    assert await _balance(ledger) == 110
    assert (await _types(ledger)).count(TransactionType.GAME_WIN.value) == 1


async def test_only_the_owner_may_act(flow, dealer):
    dealer.add(*OPEN_HAND)
    started = await flow.start_round(COMMUNITY, ALICE)

    result = await flow.act(started.value.session_id, BOB, "hit")
    assert result.error.kind is ErrorKind.NOT_SESSION_OWNER


async def test_unknown_action_is_rejected(flow, dealer):
    dealer.add(*OPEN_HAND)
    started = await flow.start_round(COMMUNITY, ALICE)

    result = await flow.act(started.value.session_id, ALICE, "split")
    assert result.error.kind is ErrorKind.ILLEGAL_ACTION


async def test_double_down_debits_extra_stake(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("5", "6", "10", "7", "10")
    started = await flow.start_round(COMMUNITY, ALICE, 20)

    result = await flow.act(started.value.session_id, ALICE, "double")

    view = result.value
    assert view.summary.result is BlackjackResult.PLAYER_WIN
    assert view.wager.double_down
    assert view.wager.debited == 40
    assert view.settlement.total_bet == 40
    assert view.settlement.payout == 80
    assert view.settlement.net_change == 40
    assert await _balance(ledger) == 140


async def test_double_down_without_funds_changes_nothing(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("5", "6", "10", "7", "10")
    started = await flow.start_round(COMMUNITY, ALICE, 60)
    session_id = started.value.session_id

    result = await flow.act(session_id, ALICE, "double")

    assert result.error.kind is ErrorKind.INSUFFICIENT_FUNDS
    session = flow.sessions.get_session(session_id)
    assert len(session.game.player_hand) == 2
    assert session.game.bet_amount == 60
    assert session.wager.debited == 60
    assert not session.wager.double_down
    assert await _balance(ledger) == 40


async def test_double_down_after_hit_is_illegal(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("2", "3", "10", "7", "2", "9")
    started = await flow.start_round(COMMUNITY, ALICE, 10)
    session_id = started.value.session_id
    await flow.act(session_id, ALICE, "hit")

    result = await flow.act(session_id, ALICE, "double")

    assert result.error.kind is ErrorKind.ILLEGAL_ACTION
    assert await _balance(ledger) == 90


async def test_double_down_requires_a_bet(flow, dealer):
    dealer.add("5", "6", "10", "7", "10")
    started = await flow.start_round(COMMUNITY, ALICE)

    result = await flow.act(started.value.session_id, ALICE, "double")
    assert result.error.kind is ErrorKind.ILLEGAL_ACTION


async def test_engine_failure_after_double_debit_is_refunded(flow, ledger, dealer, monkeypatch):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("5", "6", "10", "7", "10")
    started = await flow.start_round(COMMUNITY, ALICE, 20)
    session_id = started.value.session_id

    def boom(game):
        raise RuntimeError("engine exploded")

    monkeypatch.setattr(flow_module, "double_down", boom)
    with pytest.raises(RuntimeError):
        await flow.act(session_id, ALICE, "double")

    assert await _balance(ledger) == 80
    assert flow.sessions.get_session(session_id).wager.debited == 20
    assert (await _types(ledger))[0] == TransactionType.ADJUST.value


async def test_failed_double_down_keeps_game_and_wager_in_step(flow, ledger, dealer):
    await ledger.credit(COMMUNITY, ALICE, 100)
    # the doubled hand takes the last card, leaving none for the dealer's 15
    dealer.add("5", "6", "10", "5", "2")
    started = await flow.start_round(COMMUNITY, ALICE, 20)
    session_id = started.value.session_id

    result = await flow.act(session_id, ALICE, "double")

    assert result.error.kind is ErrorKind.ILLEGAL_ACTION
    session = flow.sessions.get_session(session_id)
    assert session.game.bet_amount == session.wager.debited == 20
    assert len(session.game.player_hand) == 2
    assert not session.game.player_stood
    assert await _balance(ledger) == 80

    after_stand = await flow.act(session_id, ALICE, "stand")
    assert after_stand.value.summary.result is BlackjackResult.DEALER_WIN
    assert after_stand.value.settlement.total_bet == 20
    assert await _balance(ledger) == 80


async def test_failed_refund_does_not_mask_the_original_error(ledger, bias, store, monkeypatch, caplog):
    await ledger.credit(COMMUNITY, ALICE, 100)

    def broken_dealer(bet):
        raise RuntimeError("shoe jammed")

    async def offline_credit(self, *args, **kwargs):
        raise RuntimeError("ledger offline")

    monkeypatch.setattr(LedgerService, "credit", offline_credit)
    flow = BlackjackFlow(ledger, bias, store, BlackjackSettings(), dealer=broken_dealer)

    with pytest.raises(RuntimeError, match="shoe jammed"):
        await flow.start_round(COMMUNITY, ALICE, 30)

    assert "Refund of 30" in caplog.text
    assert await _balance(ledger) == 70
    assert len(store) == 0


async def test_failed_payout_refunds_the_stake(flow, ledger, dealer, monkeypatch):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("A", "K", "9", "7")

    async def offline_payout(self, *args, **kwargs):
        raise RuntimeError("ledger offline")

    monkeypatch.setattr(LedgerService, "payout_win", offline_payout)

    with pytest.raises(RuntimeError, match="ledger offline"):
        await flow.start_round(COMMUNITY, ALICE, 10)

    assert flow.sessions.get_active_session_for_user(COMMUNITY, ALICE) is None
    assert len(flow.sessions) == 0
    assert await _balance(ledger) == 100
    assert (await _types(ledger))[:2] == [TransactionType.ADJUST.value, TransactionType.GAME_BET.value]


async def test_double_down_on_a_round_that_expired_mid_debit_is_refunded(flow, ledger, dealer, monotonic, monkeypatch):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add("5", "6", "10", "7", "10")
    started = await flow.start_round(COMMUNITY, ALICE, 20)
    session_id = started.value.session_id

    place_bet = LedgerService.place_bet

    async def slow_place_bet(self, *args, **kwargs):
        snapshot = await place_bet(self, *args, **kwargs)
        monotonic.advance(601)
        return snapshot

    monkeypatch.setattr(LedgerService, "place_bet", slow_place_bet)

    result = await flow.act(session_id, ALICE, "double")

    assert result.error.kind is ErrorKind.SESSION_NOT_FOUND
    assert session_id not in flow.sessions
    # the opening stake is forfeited with the round, the extra stake comes back
    assert await _balance(ledger) == 80
    assert (await _types(ledger))[:2] == [TransactionType.ADJUST.value, TransactionType.GAME_BET.value]


async def test_deal_failure_after_bet_is_refunded(ledger, bias, store):
    await ledger.credit(COMMUNITY, ALICE, 100)

    def broken_dealer(bet):
        raise RuntimeError("shoe jammed")

    flow = BlackjackFlow(ledger, bias, store, BlackjackSettings(), dealer=broken_dealer)
    with pytest.raises(RuntimeError):
        await flow.start_round(COMMUNITY, ALICE, 30)

    assert await _balance(ledger) == 100
    assert len(store) == 0
    assert await _types(ledger) == [
        TransactionType.ADJUST.value,
        TransactionType.GAME_BET.value,
        TransactionType.EARN.value,
    ]


async def test_settlement_runs_exactly_once(flow, store):
    game = create_game(0, deck=deck("A", "K", "9", "7"))
    session = store.create_session(COMMUNITY, ALICE, game, Wager())

    await flow.settle_session(session)
    with pytest.raises(SettlementError):
        await flow.settle_session(session)


async def test_settlement_refuses_unfinished_rounds(flow, store):
    session = store.create_session(COMMUNITY, ALICE, create_game(0, deck=deck(*OPEN_HAND)), Wager())
    with pytest.raises(SettlementError):
        await flow.settle_session(session)


async def test_losing_streak_rerolls_an_opening_loss(ledger, bias, store):
    for _ in range(4):
        await bias.record_outcome(COMMUNITY, ALICE, "blackjack", Outcome.DEALER)
    dealer = ScriptedDealer(deck("9", "7", "A", "K"), deck(*OPEN_HAND))
    flow = BlackjackFlow(ledger, bias, store, BlackjackSettings(), rng=FixedRandom(0.1), dealer=dealer)

    result = await flow.start_round(COMMUNITY, ALICE)

    assert dealer.calls == 2
    assert not result.value.finished


async def test_reroll_needs_the_draw_to_land(ledger, bias, store):
    for _ in range(4):
        await bias.record_outcome(COMMUNITY, ALICE, "blackjack", Outcome.DEALER)
    dealer = ScriptedDealer(deck("9", "7", "A", "K"), deck(*OPEN_HAND))
    flow = BlackjackFlow(ledger, bias, store, BlackjackSettings(), rng=FixedRandom(0.6), dealer=dealer)

    result = await flow.start_round(COMMUNITY, ALICE)

    assert dealer.calls == 1
    assert result.value.summary.result is BlackjackResult.DEALER_WIN


async def test_fresh_player_is_never_rerolled(flow, dealer):
    dealer.add("9", "7", "A", "K").add(*OPEN_HAND)
    result = await flow.start_round(COMMUNITY, ALICE)
    assert dealer.calls == 1
    assert result.value.finished


async def test_expired_round_forfeits_the_stake(flow, ledger, dealer, monotonic):
    await ledger.credit(COMMUNITY, ALICE, 100)
    dealer.add(*OPEN_HAND).add(*OPEN_HAND)
    started = await flow.start_round(COMMUNITY, ALICE, 50)
    session_id = started.value.session_id

    monotonic.advance(601)

    assert flow.view(session_id).error.kind is ErrorKind.SESSION_NOT_FOUND
    assert (await flow.act(session_id, ALICE, "stand")).error.kind is ErrorKind.SESSION_NOT_FOUND
    assert await _balance(ledger) == 50
    assert (await flow.start_round(COMMUNITY, ALICE)).ok


async def test_actions_slide_the_session_ttl(flow, dealer, monotonic):
    dealer.add("2", "3", "10", "7", "2", "2", "9")
    started = await flow.start_round(COMMUNITY, ALICE)
    session_id = started.value.session_id

    monotonic.advance(500)
    await flow.act(session_id, ALICE, "hit")
    monotonic.advance(500)

    assert flow.view(session_id).ok


async def test_free_direct_message_round_touches_no_wallet(flow, ledger, dealer):
    dealer.add("10", "8", "10", "6", "K")
    started = await flow.start_round(None, ALICE)
    result = await flow.act(started.value.session_id, ALICE, "stand")

    assert result.value.summary.result is BlackjackResult.PLAYER_WIN
    assert result.value.settlement.payout == 0
    assert result.value.settlement.balance is None
    assert await ledger.list_transactions(COMMUNITY, ALICE) == []


async def test_bet_in_direct_messages_is_refused(flow, dealer):
    dealer.add(*OPEN_HAND)
    result = await flow.start_round(None, ALICE, 10)
    assert result.error.kind is ErrorKind.MISSING_COMMUNITY
