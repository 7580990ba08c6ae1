"""
Side Activities Package

Short mini-games launched between capped levels. Every class takes
(x, y, size) and is registered under side_activities in pool_config.yaml.
"""

from .activities import SimonSays, TargetPractice

__all__ = ["SimonSays", "TargetPractice"]
