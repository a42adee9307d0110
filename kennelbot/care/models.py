"""Care records exchanged with the kennel care API."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CareCategory(str, Enum):
    FEEDING = "feeding"
    POTTY = "potty"
    MEDICATION = "medication"
    EXERCISE = "exercise"
    PUPPY = "puppy"

    @classmethod
    def parse(cls, value: Any) -> "CareCategory | None":
        raw = str(value or "").strip().lower()
        # Older logs use the plural form.
        if raw == "pottybreaks":
            raw = cls.POTTY.value
        try:
            return cls(raw)
        except ValueError:
            return None


CARE_CATEGORY_ORDER: tuple[CareCategory, ...] = tuple(CareCategory)


class DogFlagType(str, Enum):
    IN_HEAT = "in_heat"
    INCOMPATIBLE = "incompatible"
    SPECIAL_ATTENTION = "special_attention"


class DogFlag(BaseModel):
    type: DogFlagType
    incompatible_with: list[str] = Field(default_factory=list)
    value: str | None = None

    model_config = ConfigDict(extra="allow")


class LastCare(BaseModel):
    category: str
    task_name: str | None = None
    timestamp: datetime

    model_config = ConfigDict(extra="allow")


class DogCareStatus(BaseModel):
    dog_id: str
    dog_name: str
    breed: str | None = None
    color: str | None = None
    dog_photo: str | None = None
    group_name: str | None = None
    last_care: LastCare | None = None
    flags: list[DogFlag] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @field_validator("dog_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> str:
        return str(v)

    def has_flag(self, flag: DogFlagType) -> bool:
        return any(f.type == flag for f in self.flags)


class CareRecord(BaseModel):
    """Payload of a single care-recording call."""

    dog_id: str
    activity_type: str
    timestamp: str
    notes: str | None = None
    task_name: str | None = None

    @classmethod
    def build(
        cls,
        dog_id: str,
        activity_type: CareCategory | str,
        *,
        when: datetime | None = None,
        notes: str | None = None,
        task_name: str | None = None,
    ) -> "CareRecord":
        when = when or datetime.now(timezone.utc)
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        kind = activity_type.value if isinstance(activity_type, CareCategory) else str(activity_type)
        return cls(
            dog_id=str(dog_id),
            activity_type=kind,
            timestamp=when.isoformat(),
            notes=notes,
            task_name=task_name,
        )


class CareLog(BaseModel):
    id: str
    dog_id: str
    category: str
    task_name: str | None = None
    timestamp: datetime
    notes: str | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator("id", "dog_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v: Any) -> str:
        return str(v)


class CareEvent(BaseModel):
    title: str = ""
    description: str | None = None
    status: str | None = None

    model_config = ConfigDict(extra="allow")


__all__ = [
    "CARE_CATEGORY_ORDER",
    "CareCategory",
    "CareEvent",
    "CareLog",
    "CareRecord",
    "DogCareStatus",
    "DogFlag",
    "DogFlagType",
    "LastCare",
]
