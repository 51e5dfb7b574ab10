"""
Session management module.

Sessions are ephemeral: one UserSession per Telegram user, held in memory
by SessionStore for the lifetime of the process.
"""

from .state import Step, STEP_SEQUENCE, is_document_step
from .models import DocumentKind, UserSession
from .store import SessionStore, get_session_store

__all__ = [
    # State
    "Step",
    "STEP_SEQUENCE",
    "is_document_step",
    # Models
    "DocumentKind",
    "UserSession",
    # Store
    "SessionStore",
    "get_session_store",
]
