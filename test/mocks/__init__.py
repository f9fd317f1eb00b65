"""
Reusable fakes and in-memory implementations for tests.
"""

from .fake_collaborators import (
    FakeJsonHttp,
    RecordingFormFiller,
    RecordingNotifier,
    ScriptedSolver,
    no_sleep,
)
from .fake_page_host import FakePageHost
from .fake_repositories import (
    InMemoryChallengeSessionRepository,
    InMemorySolverCredentialRepository,
)
from .fake_runtime import (
    FixedClock,
    InMemoryDebugArtifactStore,
    InMemoryLogger,
    SequentialIdGenerator,
)
from .fake_tab_host import FakeTabHost

__all__ = [
    "FakePageHost",
    "FakeTabHost",
    "ScriptedSolver",
    "RecordingNotifier",
    "RecordingFormFiller",
    "FakeJsonHttp",
    "no_sleep",
    "InMemoryChallengeSessionRepository",
    "InMemorySolverCredentialRepository",
    "FixedClock",
    "SequentialIdGenerator",
    "InMemoryLogger",
    "InMemoryDebugArtifactStore",
]
