"""Almond status display table.

Almond cards show a label and a progress bar for the item's status. This is
the single place both are defined; the statuses carry no transition logic.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusDisplay:
    """How a status renders on a card."""

    label: str
    progress_percent: int
    known: bool = True


STATUS_TABLE: dict[str, StatusDisplay] = {
    # Almond lifecycle
    "new": StatusDisplay("🌱 新杏仁", 10),
    "understood": StatusDisplay("👀 被理解", 25),
    "evolving": StatusDisplay("🔄 演化中", 40),
    "memorizing": StatusDisplay("🧠 记忆", 55),
    "acting": StatusDisplay("✅ 行动", 55),
    "targeting": StatusDisplay("🎯 目标", 55),
    "reviewing_cycle": StatusDisplay("🔁 复习", 70),
    "completed": StatusDisplay("✔ 完成", 85),
    "promoting": StatusDisplay("📈 推进", 85),
    "reflecting": StatusDisplay("🪞 复盘", 95),
    "precipitating": StatusDisplay("🌰 沉淀", 100),
    "archived": StatusDisplay("🌰 归档", 100),
    # Tasks
    "todo": StatusDisplay("待办", 20),
    "doing": StatusDisplay("进行中", 50),
    "done": StatusDisplay("已完成", 80),
    # Memory items
    "reviewing": StatusDisplay("复习中", 60),
    "mastered": StatusDisplay("已掌握", 90),
}

UNKNOWN_STATUS = StatusDisplay("未知状态", 0, known=False)

# Unknown values already warned about, never more than MAX_REPORTED_UNKNOWN
MAX_REPORTED_UNKNOWN = 256
_reported_unknown: set[str] = set()


def describe_status(status: str | None) -> StatusDisplay:
    """Label and progress for status; unknown values get UNKNOWN_STATUS."""
    key = (status or "").strip().lower()
    display = STATUS_TABLE.get(key)
    if display is not None:
        return display

    if key in _reported_unknown:
        return UNKNOWN_STATUS
    if len(_reported_unknown) < MAX_REPORTED_UNKNOWN:
        _reported_unknown.add(key)
        logger.warning(f"Unknown almond status {status!r}, rendering fallback")
    else:
        logger.debug(f"Unknown almond status {status!r}, rendering fallback")
    return UNKNOWN_STATUS
