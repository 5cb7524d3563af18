from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MongoModel(BaseModel):
    """Stored document: string id mapped from Mongo's _id, plus timestamps."""
    id: Optional[str] = Field(default=None, validation_alias="_id", serialization_alias="_id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_object_id(cls, value: Any) -> Any:
        if isinstance(value, ObjectId):
            return str(value)
        return value

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utcnow()
