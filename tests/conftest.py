from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import pytest
from unittest.mock import AsyncMock, MagicMock

from clubfee.core.exceptions import AlreadyExistsError, NotFoundError
from clubfee.models.member import Member
from clubfee.models.settlement import Settlement


class InMemorySettlementStore:
    """SettlementStore keeping serialized copies, so tests see only what was saved."""

    def __init__(self):
        self.documents: Dict[int, dict] = {}
        self.save_calls = 0

    async def load_settlement(self, meeting_id: int) -> Optional[Settlement]:
        doc = self.documents.get(meeting_id)
        return Settlement.model_validate(doc) if doc is not None else None

    async def insert_settlement(self, settlement: Settlement) -> Settlement:
        if settlement.meeting_id in self.documents:
            raise AlreadyExistsError(f"Meeting {settlement.meeting_id} already has a settlement")
        settlement.id = f"settlement-{settlement.meeting_id}"
        self.documents[settlement.meeting_id] = settlement.model_dump()
        return settlement

    async def save_settlement(self, settlement: Settlement) -> Settlement:
        if settlement.meeting_id not in self.documents:
            raise NotFoundError(f"No settlement stored for meeting {settlement.meeting_id}")
        self.save_calls += 1
        self.documents[settlement.meeting_id] = settlement.model_dump()
        return settlement

    async def delete_settlement(self, meeting_id: int) -> bool:
        return self.documents.pop(meeting_id, None) is not None


class InMemoryMemberStore:
    def __init__(self, members: Iterable[Member]):
        self.members = {m.id: m for m in members}

    async def load_members(self, ids: Iterable[int]) -> List[Member]:
        return [self.members[i] for i in ids if i in self.members]

    async def load_active_members(self) -> List[Member]:
        return sorted((m for m in self.members.values() if m.is_active), key=lambda m: m.name)


@pytest.fixture
def store():
    return InMemorySettlementStore()


@pytest.fixture
def mock_db():
    """Motor database stand-in: every collection is a MagicMock with async CRUD methods."""
    db = MagicMock()
    collections: Dict[str, MagicMock] = {}

    def collection(name: str) -> MagicMock:
        if name not in collections:
            coll = MagicMock()
            coll.find_one = AsyncMock()
            coll.insert_one = AsyncMock()
            coll.replace_one = AsyncMock()
            coll.delete_one = AsyncMock()
            coll.create_index = AsyncMock()
            collections[name] = coll
        return collections[name]

    db.__getitem__.side_effect = collection
    return db


@pytest.fixture
def members() -> List[Member]:
    return [
        Member(id=1, name="홍길동"),
        Member(id=2, name="김철수"),
        Member(id=3, name="이영희", gender="F"),
        Member(id=4, name="박민수"),
        Member(id=5, name="최지우", gender="F", status="dormant"),
    ]


@pytest.fixture
def paid_at() -> datetime:
    return datetime(2024, 3, 9, 21, 30, tzinfo=timezone.utc)


@pytest.fixture
def member_store(members) -> InMemoryMemberStore:
    return InMemoryMemberStore(members)
