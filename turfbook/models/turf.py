from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import field_validator, model_validator
from sqlalchemy import DateTime
from sqlmodel import AutoString, Field, SQLModel

from turfbook.core.clock import utc_now_naive
from turfbook.services.time_grid import format_time_of_day, parse_time_of_day


class TurfStatus(str, Enum):
    """Moderation state. New listings wait for an admin."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TurfBase(SQLModel):
    name: str = Field(min_length=2, max_length=100)
    location: str = Field(max_length=200)
    city: str = Field(index=True, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price_per_hour: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    # Operating window as minutes since midnight, opening < closing
    opening_minute: int
    closing_minute: int
    is_active: bool = True


class Turf(TurfBase, table=True):
    __tablename__ = "turfs"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="users.id", index=True)
    status: TurfStatus = Field(default=TurfStatus.PENDING, sa_type=AutoString, index=True)
    rejection_reason: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now_naive, sa_type=DateTime)

    @property
    def opening_time(self) -> str:
        return format_time_of_day(self.opening_minute)

    @property
    def closing_time(self) -> str:
        return format_time_of_day(self.closing_minute)


class TurfCreate(SQLModel):
    """Turf configuration as submitted by an owner.

    This is the boundary where a malformed operating window or a negative price
    is refused; nothing downstream re-checks it.
    """

    name: str = Field(min_length=2, max_length=100)
    location: str = Field(max_length=200)
    city: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price_per_hour: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    opening_time: str
    closing_time: str
    is_active: bool = True

    @field_validator("opening_time", "closing_time")
    @classmethod
    def _canonical_time(cls, v: str) -> str:
        return format_time_of_day(parse_time_of_day(v))

    @field_validator("city")
    @classmethod
    def _normalize_city(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def _check_window(self) -> "TurfCreate":
        if parse_time_of_day(self.opening_time) >= parse_time_of_day(self.closing_time):
            raise ValueError("opening_time must be before closing_time")
        return self

    def to_row_fields(self) -> dict:
        data = self.model_dump(exclude={"opening_time", "closing_time"})
        data["opening_minute"] = parse_time_of_day(self.opening_time)
        data["closing_minute"] = parse_time_of_day(self.closing_time)
        return data


class TurfUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    location: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price_per_hour: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    opening_time: str | None = None
    closing_time: str | None = None
    is_active: bool | None = None

    @field_validator("opening_time", "closing_time")
    @classmethod
    def _canonical_time(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return format_time_of_day(parse_time_of_day(v))

    @field_validator("city")
    @classmethod
    def _normalize_city(cls, v: str | None) -> str | None:
        return v.strip().lower() if v is not None else None


class TurfPublic(SQLModel):
    id: int
    owner_id: int
    name: str
    location: str
    city: str
    description: str | None = None
    price_per_hour: Decimal
    opening_time: str
    closing_time: str
    is_active: bool
    status: TurfStatus
    rejection_reason: str | None = None


class TurfRejectRequest(SQLModel):
    reason: str | None = Field(default=None, max_length=500)
