"""
SettlementRepository - persists settlement aggregates in MongoDB.

One document per meeting; the unique index on meeting_id is the
storage-side guard against a second settlement for the same meeting.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from clubfee.core.exceptions import AlreadyExistsError, NotFoundError
from clubfee.models.settlement import Settlement

logger = logging.getLogger(__name__)


def _to_document(settlement: Settlement) -> Dict[str, Any]:
    doc = settlement.model_dump(by_alias=True, exclude={"id"})
    doc["status"] = settlement.status.value
    return doc


def _from_document(doc: Dict[str, Any]) -> Settlement:
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return Settlement(**doc)


class SettlementRepository:
    """Repository for settlements."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["settlements"]

    async def load_settlement(self, meeting_id: int) -> Optional[Settlement]:
        doc = await self.collection.find_one({"meeting_id": meeting_id})
        if doc:
            return _from_document(doc)
        return None

    async def insert_settlement(self, settlement: Settlement) -> Settlement:
        doc = _to_document(settlement)
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise AlreadyExistsError(
                f"Meeting {settlement.meeting_id} already has a settlement"
            ) from e
        settlement.id = str(result.inserted_id)
        return settlement

    async def save_settlement(self, settlement: Settlement) -> Settlement:
        """Replace the stored document for the settlement's meeting."""
        doc = _to_document(settlement)
        result = await self.collection.replace_one({"meeting_id": settlement.meeting_id}, doc)
        if result.matched_count == 0:
            raise NotFoundError(f"No settlement stored for meeting {settlement.meeting_id}")
        return settlement

    async def delete_settlement(self, meeting_id: int) -> bool:
        result = await self.collection.delete_one({"meeting_id": meeting_id})
        return result.deleted_count > 0

    async def get_by_id(self, settlement_id: str) -> Optional[Settlement]:
        if not ObjectId.is_valid(settlement_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(settlement_id)})
        if doc:
            return _from_document(doc)
        return None

    async def list_pending(self) -> List[Settlement]:
        """Settlements still waiting for payments, newest first."""
        cursor = self.collection.find({"status": "pending"}).sort("created_at", -1)
        docs = await cursor.to_list(None)
        return [_from_document(doc) for doc in docs]
