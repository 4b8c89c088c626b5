"""Shared API dependencies: single import point for all routers.

Re-exports database session and authentication dependencies so that router
modules can import everything they need from one place::

    from frontdesk.api.deps import get_db, get_current_active_user
"""

from frontdesk.auth.dependencies import (
    get_current_active_user,
    get_current_user,
    require_roles,
)
from frontdesk.database import get_db

# Reporting, export and archival are restricted to these roles.
require_manager = require_roles("admin", "manager")
require_admin = require_roles("admin")

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "require_roles",
    "require_manager",
    "require_admin",
]
