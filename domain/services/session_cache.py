from __future__ import annotations

from datetime import timedelta
from typing import Sequence
from urllib.parse import urlparse

from domain.models import ChallengeSession, ChallengeType
from domain.ports import ChallengeSessionRepositoryPort, ClockPort, LoggerPort


def domain_of(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host.lower()


class ChallengeSessionCache:
    """Per-domain record of sites whose challenge was already cleared.

    A stored session is never trusted at or after its expiry, whether or not
    it has been pruned yet.
    """

    def __init__(
        self,
        *,
        repo: ChallengeSessionRepositoryPort,
        clock: ClockPort,
        logger: LoggerPort,
        duration_hours: float = 24.0,
        enabled: bool = True,
    ) -> None:
        self._repo = repo
        self._clock = clock
        self._logger = logger
        self._duration = timedelta(hours=duration_hours)
        self._enabled = enabled

    def load(self) -> Sequence[ChallengeSession]:
        pruned = self._repo.prune_expired(self._clock.now())
        if pruned:
            self._logger.info("challenge_sessions_pruned", count=pruned)
        return self._repo.list_all()

    def get_valid(self, domain: str) -> ChallengeSession | None:
        if not self._enabled or not domain:
            return None
        session = self._repo.get(domain)
        if session is None:
            return None
        if not session.is_valid(self._clock.now()):
            self._repo.delete(domain)
            return None
        return session

    def has_valid_session(self, domain: str) -> bool:
        return self.get_valid(domain) is not None

    def store(self, domain: str, challenge_type: ChallengeType) -> ChallengeSession | None:
        if not self._enabled or not domain:
            return None
        now = self._clock.now()
        session = ChallengeSession(
            domain=domain,
            solved_at=now,
            expires_at=now + self._duration,
            challenge_type=challenge_type,
        )
        self._repo.save(session)
        self._logger.info(
            "challenge_session_stored",
            domain=domain,
            challenge_type=challenge_type.value,
            expires_at=session.expires_at.isoformat(),
        )
        return session

    def clear(self) -> None:
        self._repo.clear()
