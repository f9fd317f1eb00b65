from __future__ import annotations

from dataclasses import dataclass, field

from domain.ports import ClockPort, IdGeneratorPort, LoggerPort
from domain.services.detector import ChallengeWatch, ObstacleDetector
from domain.services.discovery import FieldDiscoveryEngine
from domain.services.messaging import TabMessageRouter
from domain.services.orchestrator import AutomationOrchestrator
from domain.services.resolver import ObstacleResolver
from domain.services.session_cache import ChallengeSessionCache
from domain.services.tabs import TabSessionCoordinator


@dataclass
class AutomationContext:
    """
    Every long-lived service of one runtime, built once at startup.

    Consumers receive the context explicitly; ``shutdown`` releases the tab
    listener, pending session timers and any running challenge watchers.
    """

    clock: ClockPort
    id_generator: IdGeneratorPort
    logger: LoggerPort
    discovery: FieldDiscoveryEngine
    detector: ObstacleDetector
    session_cache: ChallengeSessionCache
    resolver: ObstacleResolver
    coordinator: TabSessionCoordinator
    router: TabMessageRouter
    orchestrator: AutomationOrchestrator
    watches: list[ChallengeWatch] = field(default_factory=list)

    def start(self) -> None:
        self.session_cache.load()
        self.coordinator.start_listening()

    def track(self, watch: ChallengeWatch) -> ChallengeWatch:
        self.watches.append(watch)
        return watch

    async def shutdown(self) -> None:
        for watch in self.watches:
            watch.stop()
        self.watches.clear()
        self.resolver.events.clear()
        await self.coordinator.shutdown()
        self.logger.info("automation_context_shutdown")
