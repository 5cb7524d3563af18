from typing import Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from clubfee.models.member import Member, MemberStatus


class MemberRepository:
    """Read access to the club roster."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["members"]

    async def load_members(self, ids: Iterable[int]) -> List[Member]:
        id_list = list(ids)
        if not id_list:
            return []
        docs = await self.collection.find({"id": {"$in": id_list}}).to_list(None)
        return [Member(**doc) for doc in docs]

    async def load_active_members(self) -> List[Member]:
        cursor = self.collection.find({"status": MemberStatus.ACTIVE.value}).sort("name", 1)
        docs = await cursor.to_list(None)
        return [Member(**doc) for doc in docs]
