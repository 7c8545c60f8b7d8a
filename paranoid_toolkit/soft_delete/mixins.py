"""
SQLAlchemy mixins for paranoid models.

These mixins expose the lifecycle operations as instance methods that run
through the record's own session.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import DateTime, Select
from sqlalchemy.orm import Mapped, mapped_column, object_session

from .exceptions import DetachedRecordError
from .scopes import default_scope, only_deleted, with_deleted
from .services import ParanoidService, is_deleted, is_persisted


class ParanoidMixin:
    """
    Mixin adding lifecycle methods to a paranoid model.

    The class must still be registered, usually with ``@paranoid()``. The
    mixin does not add a column; see TimestampParanoidMixin.

    Usage:
        @paranoid(column="active", column_type="boolean", allow_nulls=False)
        class Account(Base, ParanoidMixin):
            __tablename__ = "accounts"
            id = mapped_column(Integer, primary_key=True)
            active = mapped_column(Boolean, nullable=False, default=True)

        account.destroy()
        account.recover()
    """

    def _paranoid_service(self) -> ParanoidService:
        session = object_session(self)
        if session is None:
            raise DetachedRecordError(self.__class__.__name__)
        return ParanoidService(session)

    def destroy(self) -> bool:
        """Soft delete, or remove permanently if already deleted."""
        return self._paranoid_service().destroy(self)

    def destroy_fully(self) -> bool:
        """Remove permanently along with dependents."""
        return self._paranoid_service().destroy_fully(self)

    def recover(
        self,
        recursive: Optional[bool] = None,
        recovery_window: Optional[timedelta] = None,
    ) -> bool:
        """Clear the deletion marker, recovering dependents by default."""
        return self._paranoid_service().recover(
            self, recursive=recursive, recovery_window=recovery_window
        )

    def is_deleted(self) -> bool:
        return is_deleted(self)

    def is_persisted(self) -> bool:
        return is_persisted(self)

    @classmethod
    def default_scope(cls) -> Select[Any]:
        return default_scope(cls)

    @classmethod
    def with_deleted(cls) -> Select[Any]:
        return with_deleted(cls)

    @classmethod
    def only_deleted(cls) -> Select[Any]:
        return only_deleted(cls)


class TimestampParanoidMixin(ParanoidMixin):
    """
    ParanoidMixin with a nullable ``deleted_at`` timestamp column.

    Usage:
        @paranoid()
        class Post(Base, TimestampParanoidMixin):
            __tablename__ = "posts"
            id = mapped_column(Integer, primary_key=True)
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, index=True
    )
