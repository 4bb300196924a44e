from __future__ import annotations

from stages.heavy import HEAVY_PIPELINE
from stages.monitor import MONITOR_PIPELINE

PIPELINES = {
    "monitor": MONITOR_PIPELINE,
    "heavy": HEAVY_PIPELINE,
}

__all__ = ["MONITOR_PIPELINE", "HEAVY_PIPELINE", "PIPELINES"]
