from enum import StrEnum
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from carmarket.database import Base


class UserRole(StrEnum):
    BUYER = "buyer"
    SELLER = "seller"


class Profile(Base):
    """Public display name of a user, readable by anyone browsing listings."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
