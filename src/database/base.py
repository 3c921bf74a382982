from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def enum_type(enum_cls: Type[PyEnum], name: str) -> Enum:
    """Store the enum's string values (not member names) in a VARCHAR column."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
    )
