import asyncio
from datetime import timedelta

import pytest

from clubfee.core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from clubfee.models.settlement import SettlementStatus
from clubfee.schemas.settlement import FeeBreakdown, Participant
from clubfee.services.settlement_calculator import SettlementCalculator
from clubfee.services.settlement_service import SettlementLedger

FEES = FeeBreakdown(game_fee=30000, food_fee=12000, other_fee=0)
ROSTER = [
    Participant(member_id=1),
    Participant(member_id=2),
    Participant(member_id=3),
    Participant(member_id=4, exclude_food=True),
]


@pytest.fixture
def ledger(store):
    return SettlementLedger(store, SettlementCalculator(rounding_unit=1000))


@pytest.mark.asyncio
async def test_create_persists_pending_settlement(ledger, store):
    settlement = await ledger.create(10, FEES, ROSTER, memo="정기전")

    assert settlement.id == "settlement-10"
    assert settlement.status is SettlementStatus.PENDING
    stored = await store.load_settlement(10)
    assert [m.amount for m in stored.members] == [12000, 12000, 12000, 8000]
    assert stored.memo == "정기전"


@pytest.mark.asyncio
async def test_second_settlement_for_meeting_is_rejected(ledger):
    await ledger.create(10, FEES, ROSTER)

    with pytest.raises(AlreadyExistsError):
        await ledger.create(10, FeeBreakdown(game_fee=1000), ROSTER)


@pytest.mark.asyncio
async def test_last_payment_completes_and_unpaid_reverts(ledger, paid_at):
    await ledger.create(10, FEES, ROSTER)

    for member_id in (1, 2, 3):
        await ledger.mark_paid(10, member_id, paid_at)
    assert (await ledger.get(10)).status is SettlementStatus.PENDING
    assert await ledger.unpaid_count(10) == 1

    await ledger.mark_paid(10, 4, paid_at)
    assert (await ledger.get(10)).status is SettlementStatus.COMPLETED
    assert await ledger.unpaid_members(10) == []

    await ledger.mark_unpaid(10, 3)
    settlement = await ledger.get(10)
    assert settlement.status is SettlementStatus.PENDING
    assert [m.member_id for m in settlement.unpaid_members()] == [3]


@pytest.mark.asyncio
async def test_mark_paid_records_timestamp(ledger, paid_at):
    await ledger.create(10, FEES, ROSTER)

    member = await ledger.mark_paid(10, 2, paid_at)

    assert member.paid_at == paid_at
    settlement = await ledger.get(10)
    assert settlement.get_member(2).paid_at == paid_at
    assert settlement.updated_at == paid_at


@pytest.mark.asyncio
async def test_recompute_refused_while_anyone_paid(ledger, paid_at):
    await ledger.create(10, FEES, ROSTER)
    await ledger.mark_paid(10, 1, paid_at)
    await ledger.update_fees(10, FeeBreakdown(game_fee=40000, food_fee=12000))

    with pytest.raises(ConflictError):
        await ledger.recompute_amounts(10)

    settlement = await ledger.get(10)
    assert settlement.get_member(2).amount == 12000


@pytest.mark.asyncio
async def test_roster_change_takes_effect_on_recompute(ledger):
    await ledger.create(10, FEES, ROSTER)

    await ledger.add_participant(10, 5, exclude_food=True)
    settlement = await ledger.get(10)
    assert settlement.get_member(5).amount == 0

    settlement = await ledger.recompute_amounts(10)
    # 30000 / 5 = 6000, 12000 / 3 = 4000
    assert [m.amount for m in settlement.members] == [10000, 10000, 10000, 6000, 6000]
    assert settlement.per_person == 10000


@pytest.mark.asyncio
async def test_set_exclude_food_then_recompute(ledger):
    await ledger.create(10, FEES, ROSTER)

    await ledger.set_exclude_food(10, 4, False)
    settlement = await ledger.recompute_amounts(10)

    assert {m.amount for m in settlement.members} == {11000}


@pytest.mark.asyncio
async def test_recompute_after_unmarking_payments(ledger, paid_at):
    await ledger.create(10, FEES, ROSTER)
    await ledger.mark_paid(10, 1, paid_at)
    await ledger.remove_participant(10, 4)
    await ledger.mark_unpaid(10, 1)

    settlement = await ledger.recompute_amounts(10)

    assert [m.amount for m in settlement.members] == [14000, 14000, 14000]


@pytest.mark.asyncio
async def test_roster_errors(ledger):
    await ledger.create(10, FEES, ROSTER)

    with pytest.raises(AlreadyExistsError):
        await ledger.add_participant(10, 1)
    with pytest.raises(NotFoundError):
        await ledger.remove_participant(10, 99)
    with pytest.raises(NotFoundError):
        await ledger.mark_unpaid(10, 99)


@pytest.mark.asyncio
async def test_missing_settlement_raises_not_found(ledger, paid_at):
    with pytest.raises(NotFoundError):
        await ledger.get(404)
    with pytest.raises(NotFoundError):
        await ledger.mark_paid(404, 1, paid_at)
    with pytest.raises(NotFoundError):
        await ledger.delete(404)


@pytest.mark.asyncio
async def test_delete_removes_settlement(ledger, store):
    await ledger.create(10, FEES, ROSTER)

    await ledger.delete(10)

    assert await store.load_settlement(10) is None
    # deleting frees the meeting for a new settlement
    await ledger.create(10, FEES, ROSTER)


@pytest.mark.asyncio
async def test_concurrent_payments_are_serialized(ledger, store, paid_at):
    await ledger.create(10, FEES, ROSTER)

    original_load = store.load_settlement

    async def slow_load(meeting_id):
        settlement = await original_load(meeting_id)
        await asyncio.sleep(0)
        return settlement

    store.load_settlement = slow_load

    await asyncio.gather(*[
        ledger.mark_paid(10, member_id, paid_at + timedelta(minutes=member_id))
        for member_id in (1, 2, 3, 4)
    ])

    settlement = await original_load(10)
    assert all(m.is_paid for m in settlement.members)
    assert settlement.status is SettlementStatus.COMPLETED


@pytest.mark.asyncio
async def test_different_meetings_do_not_share_a_lock(ledger):
    assert ledger._lock_for(1) is ledger._lock_for(1)
    assert ledger._lock_for(1) is not ledger._lock_for(2)


@pytest.mark.asyncio
async def test_lock_survives_delete(ledger):
    await ledger.create(10, FEES, ROSTER)
    lock = ledger._lock_for(10)

    await ledger.delete(10)

    assert ledger._lock_for(10) is lock


@pytest.mark.asyncio
async def test_billing_message_uses_stored_settlement(ledger, paid_at):
    await ledger.create(10, FEES, ROSTER)
    await ledger.mark_paid(10, 1, paid_at)

    message = await ledger.billing_message(10, {1: "홍길동", 2: "김철수"})

    assert "홍길동: 12,000원 (게임비+식비) ✅" in message
    assert "김철수: 12,000원 (게임비+식비)" in message
    assert "#4: 8,000원 (게임비)" in message
    assert "미납 3명 / 총 4명" in message


@pytest.mark.asyncio
async def test_billing_message_loads_names_from_member_store(store, member_store):
    ledger = SettlementLedger(store, SettlementCalculator(rounding_unit=1000), member_store)
    await ledger.create(10, FEES, ROSTER)

    message = await ledger.billing_message(10)

    assert "홍길동: 12,000원" in message
    assert "박민수: 8,000원 (게임비)" in message
    assert "#" not in message
