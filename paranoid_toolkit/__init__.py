"""
Paranoid Python Toolkit - recoverable soft deletion for SQLAlchemy models.

Instead of removing rows, paranoid models mark them deleted. Marked rows are
hidden from ordinary queries, can be recovered together with the records
that depend on them, and are removed for good by a second destroy.

Key Features
------------
* **Deletion markers**: timestamp, boolean or string deletion columns
* **Default scope**: deleted rows hidden from every ORM SELECT, relationship
  loads included, with ``with_deleted`` / ``only_deleted`` escape hatches
* **Lifecycle**: soft destroy, hard destroy and recover, each atomic
* **Cascades**: dependents destroyed and recovered with their parent, with a
  time window for recovery
* **Hooks**: before/after callbacks that can veto a transition
* **Counter caches**: parent counters kept in step with visible children

Quick Start
-----------
>>> from paranoid_toolkit import TimestampParanoidMixin, install_default_scope, paranoid
>>>
>>> @paranoid()
... class Post(Base, TimestampParanoidMixin):
...     __tablename__ = "posts"
...     id = mapped_column(Integer, primary_key=True)
>>>
>>> install_default_scope(Session)
>>> post.destroy()      # soft delete
>>> post.recover()      # undo
>>> post.destroy()
>>> post.destroy()      # gone for good

Documentation
-------------
See README.md for configuration and the command line interface.
"""

__version__ = "1.0.0"

from .config import ParanoidConfig, configure, get_config, set_config
from .soft_delete import (
    ParanoidMixin,
    ParanoidOptions,
    ParanoidRegistry,
    ParanoidService,
    TimestampParanoidMixin,
    install_default_scope,
    only_deleted,
    paranoid,
    with_deleted,
)

__all__ = [
    # Soft Delete
    "ParanoidMixin",
    "TimestampParanoidMixin",
    "ParanoidService",
    "ParanoidRegistry",
    "ParanoidOptions",
    "paranoid",
    "install_default_scope",
    "with_deleted",
    "only_deleted",
    # Configuration
    "ParanoidConfig",
    "configure",
    "get_config",
    "set_config",
]
