"""
Tracking package - session timing for time spent on target sites.
"""

from tracking.session_clock import SessionClock

__all__ = ["SessionClock"]
