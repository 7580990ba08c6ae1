"""Logging helpers for the shape pool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict


@dataclass
class LoggerConfig:
    level: int = logging.INFO
    fmt: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(component: str) -> logging.Logger:
    """Named child logger under the ``shapeflow`` root."""
    return logging.getLogger(f"shapeflow.{component}")


def setup_logging(config: LoggerConfig | None = None) -> Dict[str, logging.Logger]:
    cfg = config or LoggerConfig()
    logging.basicConfig(level=cfg.level, format=cfg.fmt)
    return {
        "shapeflow": logging.getLogger("shapeflow"),
        "scheduler": get_logger("scheduler"),
        "verifier": get_logger("verifier"),
        "sampler": get_logger("sampler"),
        "events": get_logger("events"),
        "modes": get_logger("modes"),
    }
