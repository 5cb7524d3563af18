from typing import List

from pydantic import BaseModel, ConfigDict


class FeeBreakdown(BaseModel):
    """Shared meeting expense, in whole won."""
    model_config = ConfigDict(frozen=True)

    game_fee: int = 0
    food_fee: int = 0
    other_fee: int = 0

    @property
    def total(self) -> int:
        return self.game_fee + self.food_fee + self.other_fee


class Participant(BaseModel):
    model_config = ConfigDict(frozen=True)

    member_id: int
    exclude_food: bool = False  # 식비 제외 (게임만 치는 사람)


class MemberShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    member_id: int
    amount: int
    exclude_food: bool = False


class SettlementSplit(BaseModel):
    """Calculator output: uniform reference shares plus one share per participant."""
    model_config = ConfigDict(frozen=True)

    per_person: int
    per_person_game_other: int
    per_person_food: int
    shares: List[MemberShare] = []

    def amount_for(self, member_id: int) -> int:
        for share in self.shares:
            if share.member_id == member_id:
                return share.amount
        raise KeyError(member_id)
