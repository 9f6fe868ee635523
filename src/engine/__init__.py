"""Stream engine — per-rule workers, the event pipeline, and expiry sweeping."""

from src.engine.pipeline import RuleWorker, StreamEngine
from src.engine.sweeper import ExpiredCallback, ExpirySweeper

__all__ = [
    "ExpiredCallback",
    "ExpirySweeper",
    "RuleWorker",
    "StreamEngine",
]
