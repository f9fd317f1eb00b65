"""SQLite-backed persistence adapters for domain repository ports."""

from .sqlite_challenge_session_repository import SQLiteChallengeSessionRepository
from .sqlite_solver_credential_repository import SQLiteSolverCredentialRepository

__all__ = [
    "SQLiteChallengeSessionRepository",
    "SQLiteSolverCredentialRepository",
]
