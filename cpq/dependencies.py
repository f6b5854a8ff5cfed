"""
dependencies.py — Shared FastAPI Dependencies

Reusable dependency functions for the current user and the activity
engine singletons. All routers import from here so tests can swap any of
them through app.dependency_overrides.

Business Rules:
- require_user raises 401 if not logged in, 403 if the user has no team
- The team of the current user is the tenant key for every activity call
- Authentication itself happens upstream; the session only carries user_id

Called by: all routers
Depends on: models, database, services
"""

import logging

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .schemas.activity import Actor
from .services.activity_sink import ActivitySink
from .services.bulk_registry import BulkOperationRegistry
from .services.bulk_registry import get_registry as _get_registry
from .services.flush_coordinator import FlushCoordinator
from .services.flush_coordinator import get_coordinator as _get_coordinator

log = logging.getLogger(__name__)


# ── Authentication ────────────────────────────────────────────────────


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    return db.get(User, uid)


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if not in a team."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.team_id:
        raise HTTPException(403, "User is not a member of any team")
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, email=user.email, name=user.name)


# ── Activity engine ───────────────────────────────────────────────────


def get_coordinator() -> FlushCoordinator:
    return _get_coordinator()


def get_registry() -> BulkOperationRegistry:
    return _get_registry()


_sink: ActivitySink | None = None


def get_sink() -> ActivitySink:
    global _sink
    if _sink is None:
        _sink = ActivitySink()
    return _sink
