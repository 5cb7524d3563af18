"""
Club member as handed over by the storage collaborator.

Stored enum columns are plain strings. Each enum owns its fallback for
unknown values instead of leaving it to ad hoc helpers:
- Gender: unknown -> MALE
- MemberStatus: unknown -> ACTIVE
"""
from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"

    @property
    def display_name(self) -> str:
        return "남성" if self is Gender.MALE else "여성"

    @classmethod
    def from_db_value(cls, value: Optional[str]) -> "Gender":
        for gender in cls:
            if gender.value == value:
                return gender
        return cls.MALE


class MemberStatus(str, Enum):
    ACTIVE = "active"
    DORMANT = "dormant"
    WITHDRAWN = "withdrawn"

    @property
    def display_name(self) -> str:
        return {"active": "활동", "dormant": "휴면", "withdrawn": "탈퇴"}[self.value]

    @classmethod
    def from_db_value(cls, value: Optional[str]) -> "MemberStatus":
        for status in cls:
            if status.value == value:
                return status
        return cls.ACTIVE


class Member(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: int
    name: str
    phone: str = ""
    gender: Gender = Gender.MALE
    status: MemberStatus = MemberStatus.ACTIVE
    join_date: Optional[date] = None
    initial_average: int = 150
    handicap: int = 0
    is_discounted: bool = False  # 감면 대상자 (65세 이상 등)
    memo: str = ""

    @field_validator("gender", mode="before")
    @classmethod
    def _gender_fallback(cls, value: Any) -> Gender:
        if isinstance(value, Gender):
            return value
        return Gender.from_db_value(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status_fallback(cls, value: Any) -> MemberStatus:
        if isinstance(value, MemberStatus):
            return value
        return MemberStatus.from_db_value(value)

    @property
    def is_active(self) -> bool:
        return self.status is MemberStatus.ACTIVE
