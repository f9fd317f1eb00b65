"""Paid challenge-solving services behind ``ChallengeSolverPort``."""

from .backends import balance, solve
from .client import PaidSolverClient
from .http import JsonHttpClient, UrllibJsonClient

__all__ = [
    "JsonHttpClient",
    "PaidSolverClient",
    "UrllibJsonClient",
    "balance",
    "solve",
]
