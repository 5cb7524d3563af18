"""
SettlementLedger - tracks one settlement per meeting over its settle-up period.

Every mutation is load -> mutate -> save while holding the lock of that
meeting, so the pending/completed transition and the "no recompute while
paid" guard never interleave with another update of the same settlement.
Different meetings never wait on each other.

Roster and fee edits do not recompute amounts; callers run
recompute_amounts() as a separate, auditable step.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from clubfee.core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from clubfee.models.settlement import Settlement, SettlementMember
from clubfee.repositories.base import MemberStore, SettlementStore
from clubfee.schemas.settlement import FeeBreakdown, Participant
from clubfee.services.billing_message import build_billing_message
from clubfee.services.settlement_calculator import SettlementCalculator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SettlementLedger:
    def __init__(
        self,
        store: SettlementStore,
        calculator: Optional[SettlementCalculator] = None,
        members: Optional[MemberStore] = None
    ):
        self.store = store
        self.calculator = calculator or SettlementCalculator()
        self.members = members
        self._locks: Dict[int, asyncio.Lock] = {}

    # Locks live as long as the ledger; dropping one after delete() would let a
    # racing create take a fresh lock for the same meeting.
    def _lock_for(self, meeting_id: int) -> asyncio.Lock:
        return self._locks.setdefault(meeting_id, asyncio.Lock())

    async def _load(self, meeting_id: int) -> Settlement:
        settlement = await self.store.load_settlement(meeting_id)
        if settlement is None:
            raise NotFoundError(f"No settlement for meeting {meeting_id}")
        return settlement

    async def _mutate(
        self,
        meeting_id: int,
        change: Callable[[Settlement], T],
        now: Optional[datetime] = None
    ) -> T:
        async with self._lock_for(meeting_id):
            settlement = await self._load(meeting_id)
            status_before = settlement.status
            result = change(settlement)
            settlement.touch(now)
            await self.store.save_settlement(settlement)
            if settlement.status is not status_before:
                logger.info(
                    "Settlement for meeting %s: %s -> %s",
                    meeting_id, status_before.value, settlement.status.value
                )
            return result

    async def create(
        self,
        meeting_id: int,
        fees: FeeBreakdown,
        participants: Sequence[Participant],
        memo: str = "",
        now: Optional[datetime] = None
    ) -> Settlement:
        async with self._lock_for(meeting_id):
            if await self.store.load_settlement(meeting_id) is not None:
                raise AlreadyExistsError(f"Meeting {meeting_id} already has a settlement")

            split = self.calculator.compute(fees, participants)
            settlement = Settlement.from_split(meeting_id, fees, split, memo=memo, now=now)
            settlement = await self.store.insert_settlement(settlement)

        logger.info(
            "Created settlement for meeting %s: %d participants, %d won per person",
            meeting_id, len(settlement.members), settlement.per_person
        )
        return settlement

    async def get(self, meeting_id: int) -> Settlement:
        return await self._load(meeting_id)

    async def recompute_amounts(self, meeting_id: int, now: Optional[datetime] = None) -> Settlement:
        """Re-run the calculator over current fees and roster. Refused while anyone has paid."""
        def change(settlement: Settlement) -> Settlement:
            if settlement.has_payments():
                logger.warning(
                    "Refusing to recompute meeting %s: %d member(s) already paid",
                    meeting_id, settlement.paid_count()
                )
                raise ConflictError(
                    f"{settlement.paid_count()} payment(s) recorded for meeting {meeting_id}; "
                    "unmark them before recomputing amounts"
                )
            split = self.calculator.compute(settlement.fees, settlement.participants())
            settlement.apply_split(split)
            return settlement

        return await self._mutate(meeting_id, change, now)

    async def add_participant(
        self,
        meeting_id: int,
        member_id: int,
        exclude_food: bool = False,
        now: Optional[datetime] = None
    ) -> SettlementMember:
        return await self._mutate(
            meeting_id, lambda s: s.add_participant(member_id, exclude_food), now
        )

    async def remove_participant(
        self, meeting_id: int, member_id: int, now: Optional[datetime] = None
    ) -> SettlementMember:
        return await self._mutate(meeting_id, lambda s: s.remove_participant(member_id), now)

    async def set_exclude_food(
        self, meeting_id: int, member_id: int, exclude_food: bool, now: Optional[datetime] = None
    ) -> SettlementMember:
        return await self._mutate(
            meeting_id, lambda s: s.set_exclude_food(member_id, exclude_food), now
        )

    async def update_fees(
        self, meeting_id: int, fees: FeeBreakdown, now: Optional[datetime] = None
    ) -> Settlement:
        def change(settlement: Settlement) -> Settlement:
            settlement.update_fees(fees)
            return settlement

        return await self._mutate(meeting_id, change, now)

    async def mark_paid(self, meeting_id: int, member_id: int, timestamp: datetime) -> SettlementMember:
        return await self._mutate(
            meeting_id, lambda s: s.mark_paid(member_id, timestamp), timestamp
        )

    async def mark_unpaid(
        self, meeting_id: int, member_id: int, now: Optional[datetime] = None
    ) -> SettlementMember:
        return await self._mutate(meeting_id, lambda s: s.mark_unpaid(member_id), now)

    async def unpaid_count(self, meeting_id: int) -> int:
        settlement = await self._load(meeting_id)
        return settlement.unpaid_count()

    async def unpaid_members(self, meeting_id: int) -> List[SettlementMember]:
        settlement = await self._load(meeting_id)
        return settlement.unpaid_members()

    async def delete(self, meeting_id: int) -> None:
        """Destructive removal; not a state transition."""
        async with self._lock_for(meeting_id):
            deleted = await self.store.delete_settlement(meeting_id)
        if not deleted:
            raise NotFoundError(f"No settlement for meeting {meeting_id}")
        logger.info("Deleted settlement for meeting %s", meeting_id)

    async def billing_message(
        self,
        meeting_id: int,
        member_names: Optional[Mapping[int, str]] = None,
        meeting_date: Optional[date] = None
    ) -> str:
        """Settle-up notice; names come from the member store unless given."""
        settlement = await self._load(meeting_id)
        if member_names is None:
            member_names = await self._member_names(settlement)
        return build_billing_message(settlement, member_names, meeting_date)

    async def _member_names(self, settlement: Settlement) -> Dict[int, str]:
        if self.members is None:
            return {}
        members = await self.members.load_members([m.member_id for m in settlement.members])
        return {member.id: member.name for member in members}


async def get_settlement_ledger() -> SettlementLedger:
    """Ledger backed by the active MongoDB connection."""
    from clubfee.db.session import get_member_repository, get_settlement_repository

    return SettlementLedger(
        await get_settlement_repository(),
        members=await get_member_repository()
    )
