"""
Settlement calculator - splits a meeting's shared expense across participants.

Algorithm:
1. Game fee and other fee are shared by every participant
2. Food fee is shared only by participants who did not skip the meal
3. Each per-person share is rounded to the rounding unit (ties round up)
4. A participant owes the game/other share plus, unless excluded, the food share

Rounding surplus or deficit is accepted as is: members pay a clean uniform
amount rather than an exact fraction of the total.
"""
import logging
from typing import List, Optional, Sequence

from clubfee.core.config import settings
from clubfee.core.exceptions import InvalidArgumentError
from clubfee.schemas.settlement import FeeBreakdown, MemberShare, Participant, SettlementSplit
from clubfee.utils.money import split_evenly

logger = logging.getLogger(__name__)


class SettlementCalculator:
    """Pure, idempotent fee split."""

    def __init__(self, rounding_unit: Optional[int] = None):
        unit = settings.SETTLEMENT_ROUNDING_UNIT if rounding_unit is None else rounding_unit
        if unit <= 0:
            raise InvalidArgumentError(f"Rounding unit must be positive: {unit}")
        self.rounding_unit = unit

    def compute(self, fees: FeeBreakdown, participants: Sequence[Participant]) -> SettlementSplit:
        """
        Compute each participant's amount.

        Raises InvalidArgumentError for an empty roster, a negative fee or a
        member listed twice.
        """
        self._validate(fees, participants)

        food_eligible = [p for p in participants if not p.exclude_food]

        per_person_game_other = split_evenly(
            fees.game_fee + fees.other_fee, len(participants), self.rounding_unit
        )
        if food_eligible:
            per_person_food = split_evenly(fees.food_fee, len(food_eligible), self.rounding_unit)
        else:
            per_person_food = 0

        shares: List[MemberShare] = []
        for participant in participants:
            amount = per_person_game_other
            if not participant.exclude_food:
                amount += per_person_food
            shares.append(MemberShare(
                member_id=participant.member_id,
                amount=amount,
                exclude_food=participant.exclude_food
            ))

        logger.debug(
            "Split %s won among %d participants (%d food-eligible): %d + %d",
            fees.total, len(participants), len(food_eligible),
            per_person_game_other, per_person_food
        )

        return SettlementSplit(
            per_person=per_person_game_other + per_person_food,
            per_person_game_other=per_person_game_other,
            per_person_food=per_person_food,
            shares=shares
        )

    @staticmethod
    def _validate(fees: FeeBreakdown, participants: Sequence[Participant]) -> None:
        if not participants:
            raise InvalidArgumentError("Settlement needs at least one participant")

        for name in ("game_fee", "food_fee", "other_fee"):
            value = getattr(fees, name)
            if value < 0:
                raise InvalidArgumentError(f"{name} must not be negative: {value}")

        seen = set()
        for participant in participants:
            if participant.member_id in seen:
                raise InvalidArgumentError(
                    f"Member {participant.member_id} is listed more than once"
                )
            seen.add(participant.member_id)
