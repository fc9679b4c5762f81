"""
Session module - Reconciliation engine and the consumer-facing context.
"""

from connect_auth.session.engine import SessionEngine, SessionState, EngineState
from connect_auth.session.context import AuthContext, use_auth

__all__ = [
    "SessionEngine",
    "SessionState",
    "EngineState",
    "AuthContext",
    "use_auth",
]
