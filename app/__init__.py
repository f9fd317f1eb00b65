"""Application/UI layer package."""

from .bootstrap import build_automation_context, resolve_solver_backend
from .facade import AdminFacade, ChallengeSessionView, SolverKeyView
from .fillers import ReportOnlyFormFiller

__all__ = [
    "AdminFacade",
    "ChallengeSessionView",
    "SolverKeyView",
    "ReportOnlyFormFiller",
    "build_automation_context",
    "resolve_solver_backend",
]
