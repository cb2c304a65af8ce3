from collections.abc import Iterable
from typing import Any

from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
    """Declarative base; models without ``__tablename__`` get their lowercased class name."""

    @declared_attr.directive
    def __tablename__(cls) -> str:  # type: ignore
        return cls.__name__.lower()

    def to_dict(self, exclude: Iterable[str] = ()) -> dict[str, Any]:
        skipped = set(exclude)
        return {c.key: getattr(self, c.key) for c in self.__table__.columns if c.key not in skipped}
