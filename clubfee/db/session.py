from clubfee.db.mongo import mongodb
from clubfee.repositories.member_repo import MemberRepository
from clubfee.repositories.settlement_repo import SettlementRepository


async def get_database():
    """Return the active database connection."""
    return mongodb.db


async def get_settlement_repository() -> SettlementRepository:
    return SettlementRepository(await get_database())


async def get_member_repository() -> MemberRepository:
    return MemberRepository(await get_database())
