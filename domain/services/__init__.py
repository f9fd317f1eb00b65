"""
Domain services.

These services orchestrate higher-level workflows while depending only on
domain models and ports so that infrastructure and UI layers can remain thin.
"""

from .classifier import ElementClassifier
from .context import AutomationContext
from .debug import DebugRunManager
from .detector import ChallengeWatch, ObstacleDetector, pick_primary
from .discovery import FieldDiscoveryEngine
from .events import EventChannel
from .field_types import infer_field_type
from .messaging import TabMessageRouter
from .orchestrator import AutomationOrchestrator
from .resolver import ObstacleResolver
from .session_cache import ChallengeSessionCache, domain_of
from .tabs import TabSessionCoordinator
from .waiting import poll_until, wait_for_event

__all__ = [
    "ElementClassifier",
    "AutomationContext",
    "DebugRunManager",
    "ChallengeWatch",
    "ObstacleDetector",
    "pick_primary",
    "FieldDiscoveryEngine",
    "EventChannel",
    "infer_field_type",
    "TabMessageRouter",
    "AutomationOrchestrator",
    "ObstacleResolver",
    "ChallengeSessionCache",
    "domain_of",
    "TabSessionCoordinator",
    "poll_until",
    "wait_for_event",
]
