"""Plain-text settle-up notice for the club chat."""
from datetime import date
from typing import List, Mapping, Optional

from clubfee.models.settlement import Settlement, SettlementMember
from clubfee.utils.money import format_won


def _breakdown(settlement: Settlement, member: SettlementMember) -> str:
    parts: List[str] = []
    if settlement.fees.game_fee > 0:
        parts.append("게임비")
    if settlement.fees.other_fee > 0:
        parts.append("기타")
    if settlement.fees.food_fee > 0 and not member.exclude_food:
        parts.append("식비")
    return f" ({'+'.join(parts)})" if parts else ""


def build_billing_message(
    settlement: Settlement,
    member_names: Mapping[int, str],
    meeting_date: Optional[date] = None
) -> str:
    """
    Render the notice sent to members after a meeting.

    Members missing from member_names are shown by id. Paid members get a
    check mark so the notice can be re-sent as a reminder.
    """
    fees = settlement.fees
    lines = ["📋 볼링 동호회 정산 안내", ""]
    if meeting_date is not None:
        lines.append(f"📅 모임일: {meeting_date.isoformat()}")
        lines.append("")

    lines.append("💰 비용 내역")
    lines.append(f"  - 게임비: {format_won(fees.game_fee)}")
    if fees.food_fee > 0:
        lines.append(f"  - 식비: {format_won(fees.food_fee)}")
    if fees.other_fee > 0:
        lines.append(f"  - 기타: {format_won(fees.other_fee)}")
    lines.append(f"  - 총액: {format_won(settlement.total_amount)}")
    lines.append("")

    lines.append("👥 회원별 납부 금액")
    for member in settlement.members:
        name = member_names.get(member.member_id, f"#{member.member_id}")
        paid_mark = " ✅" if member.is_paid else ""
        lines.append(f"  {name}: {format_won(member.amount)}{_breakdown(settlement, member)}{paid_mark}")
    lines.append("")

    unpaid = settlement.unpaid_count()
    if unpaid:
        lines.append(f"미납 {unpaid}명 / 총 {len(settlement.members)}명")
    else:
        lines.append("모든 회원 납부 완료")

    return "\n".join(lines)
