from enum import Enum

from sqlmodel import AutoString, Field, SQLModel


class UserRole(str, Enum):
    USER = "user"
    OWNER = "owner"
    ADMIN = "admin"


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    role: UserRole = Field(default=UserRole.USER, sa_type=AutoString)


class User(UserBase, table=True):
    """Account row. Provisioned by the identity service that issues our JWTs."""

    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
