"""
Settlement model - one meeting's shared-expense split.

Design principles:
- At most one settlement per meeting (unique meeting_id)
- Amounts are integer won, written only by a calculator split
- Amounts are never rewritten while any payment is recorded
- Status: pending -> completed when the last member pays,
  completed -> pending when any payment is reversed

Invariants:
- amount >= 0 for every member
- paid_at is set iff is_paid
- status == completed iff every member is paid
"""
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from clubfee.core.exceptions import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)
from clubfee.models.base import MongoModel
from clubfee.schemas.settlement import FeeBreakdown, Participant, SettlementSplit


class SettlementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"

    @property
    def display_name(self) -> str:
        return "진행중" if self is SettlementStatus.PENDING else "완료"

    @classmethod
    def from_db_value(cls, value: Optional[str]) -> "SettlementStatus":
        """Unknown stored values fall back to PENDING."""
        for status in cls:
            if status.value == value:
                return status
        return cls.PENDING


class SettlementMember(BaseModel):
    member_id: int
    amount: int = Field(default=0, ge=0)
    exclude_food: bool = False
    is_paid: bool = False
    paid_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _paid_at_matches_flag(self) -> "SettlementMember":
        if self.is_paid != (self.paid_at is not None):
            raise ValueError("paid_at must be set exactly when is_paid is true")
        return self

    def pay(self, timestamp: datetime) -> None:
        self.is_paid = True
        self.paid_at = timestamp

    def unpay(self) -> None:
        self.is_paid = False
        self.paid_at = None


class Settlement(MongoModel):
    meeting_id: int
    fees: FeeBreakdown = FeeBreakdown()
    per_person: int = 0
    status: SettlementStatus = SettlementStatus.PENDING
    members: List[SettlementMember] = []
    memo: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _status_fallback(cls, value: Any) -> SettlementStatus:
        if isinstance(value, SettlementStatus):
            return value
        return SettlementStatus.from_db_value(value)

    @classmethod
    def from_split(
        cls,
        meeting_id: int,
        fees: FeeBreakdown,
        split: SettlementSplit,
        memo: str = "",
        now: Optional[datetime] = None
    ) -> "Settlement":
        members = [
            SettlementMember(member_id=s.member_id, amount=s.amount, exclude_food=s.exclude_food)
            for s in split.shares
        ]
        settlement = cls(
            meeting_id=meeting_id,
            fees=fees,
            per_person=split.per_person,
            members=members,
            memo=memo
        )
        if now is not None:
            settlement.created_at = now
            settlement.updated_at = now
        return settlement

    @property
    def total_amount(self) -> int:
        return self.fees.total

    @property
    def is_completed(self) -> bool:
        return self.status is SettlementStatus.COMPLETED

    def participants(self) -> List[Participant]:
        return [Participant(member_id=m.member_id, exclude_food=m.exclude_food) for m in self.members]

    def get_member(self, member_id: int) -> SettlementMember:
        for member in self.members:
            if member.member_id == member_id:
                return member
        raise NotFoundError(f"Member {member_id} is not part of the settlement for meeting {self.meeting_id}")

    def has_member(self, member_id: int) -> bool:
        return any(m.member_id == member_id for m in self.members)

    # Roster and fees. None of these recompute amounts.

    def add_participant(self, member_id: int, exclude_food: bool = False) -> SettlementMember:
        if self.has_member(member_id):
            raise AlreadyExistsError(
                f"Member {member_id} already participates in meeting {self.meeting_id}"
            )
        member = SettlementMember(member_id=member_id, exclude_food=exclude_food)
        self.members.append(member)
        self._refresh_status()
        return member

    def remove_participant(self, member_id: int) -> SettlementMember:
        member = self.get_member(member_id)
        if len(self.members) == 1:
            raise InvalidArgumentError("Cannot remove the last participant of a settlement")
        self.members.remove(member)
        self._refresh_status()
        return member

    def set_exclude_food(self, member_id: int, exclude_food: bool) -> SettlementMember:
        member = self.get_member(member_id)
        member.exclude_food = exclude_food
        return member

    def update_fees(self, fees: FeeBreakdown) -> None:
        for name in ("game_fee", "food_fee", "other_fee"):
            if getattr(fees, name) < 0:
                raise InvalidArgumentError(f"{name} must not be negative: {getattr(fees, name)}")
        self.fees = fees

    def apply_split(self, split: SettlementSplit) -> None:
        """Overwrite every member's amount; refused while any payment is recorded."""
        if self.has_payments():
            raise ConflictError(
                f"{self.paid_count()} payment(s) recorded for meeting {self.meeting_id}; "
                "unmark them before recomputing amounts"
            )
        amounts = {share.member_id: share.amount for share in split.shares}
        if set(amounts) != {m.member_id for m in self.members}:
            raise InvalidArgumentError("Split does not cover the current participants")
        for member in self.members:
            member.amount = amounts[member.member_id]
        self.per_person = split.per_person

    # Payments

    def mark_paid(self, member_id: int, timestamp: datetime) -> SettlementMember:
        member = self.get_member(member_id)
        member.pay(timestamp)
        self._refresh_status()
        return member

    def mark_unpaid(self, member_id: int) -> SettlementMember:
        member = self.get_member(member_id)
        member.unpay()
        self._refresh_status()
        return member

    def _refresh_status(self) -> None:
        if self.members and all(m.is_paid for m in self.members):
            self.status = SettlementStatus.COMPLETED
        else:
            self.status = SettlementStatus.PENDING

    # Queries

    def unpaid_members(self) -> List[SettlementMember]:
        return [m for m in self.members if not m.is_paid]

    def unpaid_count(self) -> int:
        return len(self.unpaid_members())

    def paid_count(self) -> int:
        return len(self.members) - self.unpaid_count()

    def has_payments(self) -> bool:
        return any(m.is_paid for m in self.members)

    def collected_amount(self) -> int:
        return sum(m.amount for m in self.members if m.is_paid)

    def outstanding_amount(self) -> int:
        return sum(m.amount for m in self.members if not m.is_paid)
