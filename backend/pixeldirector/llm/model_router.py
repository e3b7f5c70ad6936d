"""Task -> planner model selection. Cheap model for verification, full model for analysis and planning."""

from __future__ import annotations

from pixeldirector.config import settings

_TASK_MODEL_MAP = {
    "analyze": "full",
    "plan": "full",
    "verify": "cheap",
}


def get_model_for_task(task: str) -> str:
    tier = _TASK_MODEL_MAP.get(task, "full")
    if tier == "cheap":
        return settings.model_planner_cheap
    return settings.model_planner
