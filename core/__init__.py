"""
Core business logic package for ScrollGuard.

Contains the headless SessionController, its enforcement policy and
lock-in guard, and the serialized runner. Zero UI dependencies.
"""

from core.controller import SessionController
from core.runner import ControllerRunner

__all__ = ["SessionController", "ControllerRunner"]
