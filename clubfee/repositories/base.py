"""Storage contracts the core consumes. The Mongo repositories implement them."""
from typing import Iterable, List, Optional, Protocol

from clubfee.models.member import Member
from clubfee.models.settlement import Settlement


class SettlementStore(Protocol):
    async def load_settlement(self, meeting_id: int) -> Optional[Settlement]:
        ...

    async def insert_settlement(self, settlement: Settlement) -> Settlement:
        """Persist a new settlement. Raises AlreadyExistsError for a taken meeting_id."""
        ...

    async def save_settlement(self, settlement: Settlement) -> Settlement:
        ...

    async def delete_settlement(self, meeting_id: int) -> bool:
        ...


class MemberStore(Protocol):
    async def load_members(self, ids: Iterable[int]) -> List[Member]:
        ...

    async def load_active_members(self) -> List[Member]:
        ...
