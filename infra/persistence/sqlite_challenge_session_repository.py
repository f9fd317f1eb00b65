from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Sequence

from domain.models import ChallengeSession, ChallengeType
from ._datetime import dt_to_iso, iso_to_dt


class SQLiteChallengeSessionRepository:
    """
    SQLite-backed implementation of ``ChallengeSessionRepositoryPort``.

    One row per domain; storing a session for a domain replaces the previous
    one. Expired rows are only removed by ``delete`` or ``prune_expired``.
    """

    _SCHEMA_SQL = """\
    CREATE TABLE IF NOT EXISTS challenge_sessions (
        domain         TEXT PRIMARY KEY,
        challenge_type TEXT NOT NULL,
        solved_at      TEXT NOT NULL,
        expires_at     TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_challenge_sessions_expires
        ON challenge_sessions (expires_at);
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self._SCHEMA_SQL)

    def __enter__(self) -> "SQLiteChallengeSessionRepository":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def get(self, domain: str) -> ChallengeSession | None:
        row = self._conn.execute(
            "SELECT domain, challenge_type, solved_at, expires_at "
            "FROM challenge_sessions WHERE domain = ?",
            (domain,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_session(row)

    def save(self, session: ChallengeSession) -> None:
        self._conn.execute(
            "INSERT INTO challenge_sessions (domain, challenge_type, solved_at, expires_at) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(domain) DO UPDATE SET "
            "challenge_type=excluded.challenge_type, "
            "solved_at=excluded.solved_at, expires_at=excluded.expires_at",
            (
                session.domain,
                session.challenge_type.value,
                dt_to_iso(session.solved_at),
                dt_to_iso(session.expires_at),
            ),
        )
        self._conn.commit()

    def delete(self, domain: str) -> None:
        self._conn.execute("DELETE FROM challenge_sessions WHERE domain = ?", (domain,))
        self._conn.commit()

    def list_all(self) -> Sequence[ChallengeSession]:
        rows = self._conn.execute(
            "SELECT domain, challenge_type, solved_at, expires_at "
            "FROM challenge_sessions ORDER BY expires_at DESC",
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def prune_expired(self, now: datetime) -> int:
        # Timestamps are normalised to UTC ISO-8601 so they compare as text.
        cursor = self._conn.execute(
            "DELETE FROM challenge_sessions WHERE expires_at <= ?",
            (dt_to_iso(now),),
        )
        self._conn.commit()
        return cursor.rowcount

    def clear(self) -> None:
        self._conn.execute("DELETE FROM challenge_sessions")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _row_to_session(row: tuple[object, ...]) -> ChallengeSession:
        solved_at = iso_to_dt(str(row[2]))
        expires_at = iso_to_dt(str(row[3]))
        if solved_at is None or expires_at is None:
            raise ValueError("Challenge session timestamps must not be null")
        return ChallengeSession(
            domain=str(row[0]),
            challenge_type=ChallengeType(str(row[1])),
            solved_at=solved_at,
            expires_at=expires_at,
        )
