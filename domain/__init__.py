"""
Domain layer package.

This package contains the automation core: models, ports and services that
are independent of Playwright, HTTP clients or storage engines.
"""

from .errors import (  # noqa: F401
    AutomationError,
    ElementClassificationError,
    InvalidTransitionError,
    SolverBackendError,
    TabNotFoundError,
    WaitTimeoutError,
)
from .models import (  # noqa: F401
    AttemptOutcome,
    AttemptStatus,
    ChallengeInfo,
    ChallengeSession,
    ChallengeStatus,
    ChallengeType,
    FieldDescriptor,
    FormContext,
    JobPostingRef,
    RunContext,
    TabInfo,
    TabSession,
    TabSessionState,
)
from .ports import (  # noqa: F401
    ChallengeSessionRepositoryPort,
    ChallengeSolverPort,
    ClockPort,
    FormFillerPort,
    IdGeneratorPort,
    LoggerPort,
    NotifierPort,
    PageHostPort,
    SolverCredentialRepositoryPort,
    TabHostPort,
)

__all__ = [
    # Errors
    "AutomationError",
    "ElementClassificationError",
    "InvalidTransitionError",
    "SolverBackendError",
    "TabNotFoundError",
    "WaitTimeoutError",
    # Models
    "AttemptOutcome",
    "AttemptStatus",
    "ChallengeInfo",
    "ChallengeSession",
    "ChallengeStatus",
    "ChallengeType",
    "FieldDescriptor",
    "FormContext",
    "JobPostingRef",
    "RunContext",
    "TabInfo",
    "TabSession",
    "TabSessionState",
    # Ports
    "PageHostPort",
    "TabHostPort",
    "ChallengeSolverPort",
    "NotifierPort",
    "FormFillerPort",
    "ChallengeSessionRepositoryPort",
    "SolverCredentialRepositoryPort",
    "ClockPort",
    "IdGeneratorPort",
    "LoggerPort",
]
