from __future__ import annotations

import sqlite3
from typing import Sequence

from domain.models import SolverCredential
from ._datetime import dt_to_iso, iso_to_dt


class SQLiteSolverCredentialRepository:
    """
    SQLite-backed implementation of ``SolverCredentialRepositoryPort``.

    API keys are stored as plain text, one row per backend name.
    """

    _SCHEMA_SQL = """\
    CREATE TABLE IF NOT EXISTS solver_credentials (
        backend               TEXT PRIMARY KEY,
        api_key               TEXT NOT NULL,
        timeout_seconds       REAL NOT NULL,
        poll_interval_seconds REAL NOT NULL,
        updated_at            TEXT NOT NULL
    );
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self._SCHEMA_SQL)

    def __enter__(self) -> "SQLiteSolverCredentialRepository":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def upsert(self, credential: SolverCredential) -> None:
        self._conn.execute(
            "INSERT INTO solver_credentials "
            "(backend, api_key, timeout_seconds, poll_interval_seconds, updated_at) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(backend) DO UPDATE SET "
            "api_key=excluded.api_key, timeout_seconds=excluded.timeout_seconds, "
            "poll_interval_seconds=excluded.poll_interval_seconds, "
            "updated_at=excluded.updated_at",
            (
                credential.backend,
                credential.api_key,
                credential.timeout_seconds,
                credential.poll_interval_seconds,
                dt_to_iso(credential.updated_at),
            ),
        )
        self._conn.commit()

    def get(self, backend: str) -> SolverCredential | None:
        row = self._conn.execute(
            "SELECT backend, api_key, timeout_seconds, poll_interval_seconds, updated_at "
            "FROM solver_credentials WHERE backend = ?",
            (backend,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_credential(row)

    def list_all(self) -> Sequence[SolverCredential]:
        rows = self._conn.execute(
            "SELECT backend, api_key, timeout_seconds, poll_interval_seconds, updated_at "
            "FROM solver_credentials ORDER BY backend",
        ).fetchall()
        return [self._row_to_credential(r) for r in rows]

    def delete(self, backend: str) -> None:
        self._conn.execute("DELETE FROM solver_credentials WHERE backend = ?", (backend,))
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _row_to_credential(row: tuple[object, ...]) -> SolverCredential:
        updated_at = iso_to_dt(str(row[4]))
        if updated_at is None:
            raise ValueError("Solver credential timestamp must not be null")
        return SolverCredential(
            backend=str(row[0]),
            api_key=str(row[1]),
            timeout_seconds=float(row[2]),  # type: ignore[arg-type]
            poll_interval_seconds=float(row[3]),  # type: ignore[arg-type]
            updated_at=updated_at,
        )
