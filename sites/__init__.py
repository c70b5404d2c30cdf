"""
Sites package - classifies URLs as target destinations.
"""

from sites.targets import TargetMatcher, TargetRule, DEFAULT_RULES, is_target

__all__ = ["TargetMatcher", "TargetRule", "DEFAULT_RULES", "is_target"]
