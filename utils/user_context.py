"""Propagate the authenticated admin through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True)
class AdminIdentity:
    """The admin a request is acting as, taken from a verified access token."""

    user_id: str
    email: str


_current_admin: ContextVar[AdminIdentity | None] = ContextVar("current_admin", default=None)


def get_current_admin_or_none() -> AdminIdentity | None:
    """Current admin, or None outside an authenticated request."""
    return _current_admin.get()


@contextmanager
def admin_context(admin: AdminIdentity):
    """
    Act as the given admin for the duration of the block.

    Used by the auth middleware once a bearer token verifies, and by tests.
    The previous admin (or none) is restored on exit, including on error.
    """
    token = _current_admin.set(admin)
    try:
        yield admin
    finally:
        _current_admin.reset(token)
