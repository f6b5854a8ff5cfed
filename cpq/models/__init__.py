"""Database models — re-exports all models.

Import from here:  from cpq.models import ActivityLog, BulkOperation, ...
Or from submodules: from cpq.models.activity import ActivityLog
"""

from .base import Base  # noqa: F401

# Teams & Users
from .auth import Team, User  # noqa: F401

# Catalog
from .catalog import Component  # noqa: F401

# Activity log & bulk coordination
from .activity import ActivityLog, BulkOperation  # noqa: F401
