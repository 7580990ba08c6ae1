"""
Evaluation Package
==================

Contains the verification harness for checking plugin shapes.
"""

from shapeflow.evaluation.run_verify import verify_plugin, load_plugin

__all__ = ["verify_plugin", "load_plugin"]
