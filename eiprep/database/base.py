"""
Declarative base for the assessment schema.

Repositories exchange plain row dicts with the engine, so every model can
convert itself to and from one. Keys that are not columns are dropped, which
lets callers pass engine-side rows that carry extra fields.
"""

from typing import Any, Dict, List

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# Stable constraint names, shared by create_all and the migrations
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

Base = declarative_base(metadata=metadata)


class ModelBase(Base):
    """Row-dict conversions for every ORM model."""

    __abstract__ = True

    @classmethod
    def column_names(cls) -> List[str]:
        return [column.name for column in cls.__table__.columns]

    @classmethod
    def _columns_only(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        names = set(cls.column_names())
        return {key: value for key, value in data.items() if key in names}

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.column_names()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelBase":
        return cls(**cls._columns_only(data))

    def update(self, changes: Dict[str, Any]) -> None:
        """Apply ``changes`` in place; unknown keys are ignored."""
        for key, value in self._columns_only(changes).items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        keys = ", ".join(
            f"{column.name}={getattr(self, column.name)!r}"
            for column in self.__table__.primary_key.columns
        )
        return f"<{type(self).__name__} {keys}>"
