"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, current_year
from utils.user_context import AdminIdentity, get_current_admin_or_none, admin_context
from utils.logging import setup_logging
