"""Infrastructure adapters – concrete implementations of domain ports."""

from .browser import PlaywrightBrowserSession, PlaywrightPageHost, PlaywrightTabHost
from .config import FileSystemConfigProvider
from .logs import FileSystemDebugArtifactStore
from .notify import ConsoleNotifier, TelegramBotConfig, TelegramNotifier, build_notifier
from .persistence import SQLiteChallengeSessionRepository, SQLiteSolverCredentialRepository
from .runtime import StructuredLogger, SystemClock, UuidIdGenerator
from .solvers import PaidSolverClient, UrllibJsonClient

__all__ = [
    "PlaywrightBrowserSession",
    "PlaywrightPageHost",
    "PlaywrightTabHost",
    "FileSystemConfigProvider",
    "FileSystemDebugArtifactStore",
    "ConsoleNotifier",
    "TelegramBotConfig",
    "TelegramNotifier",
    "build_notifier",
    "SQLiteChallengeSessionRepository",
    "SQLiteSolverCredentialRepository",
    "SystemClock",
    "UuidIdGenerator",
    "StructuredLogger",
    "PaidSolverClient",
    "UrllibJsonClient",
]
