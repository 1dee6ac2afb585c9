"""Lead status state machine and the clamped lead-score setter.

Statuses progress ``new -> contacted -> qualified -> converted``; ``lost`` can
be reached from any open status. ``converted`` and ``lost`` are terminal.
Moving backwards, or out of a terminal status, requires an explicit reopen.
"""

from datetime import datetime
from typing import Union

from sqlalchemy import case
from sqlalchemy.sql.elements import ColumnElement

from leadconvert.db import LEAD_STATUSES, Lead

MIN_SCORE = 0.0
MAX_SCORE = 100.0
QUALIFIED_THRESHOLD = 70

STATUS_RANK = {"new": 0, "contacted": 1, "qualified": 2, "converted": 3}
TERMINAL_STATUSES = frozenset({"converted", "lost"})


class InvalidStatusTransition(ValueError):
    """Raised when a status change would move a lead backwards without a reopen."""


def clamp_score(value: Union[int, float]) -> float:
    return float(min(max(value, MIN_SCORE), MAX_SCORE))


def apply_score(lead: Lead, value: Union[int, float]) -> float:
    lead.lead_score = clamp_score(value)
    lead.updated_at = datetime.utcnow()
    return lead.lead_score


def clamped_increment(delta: Union[int, float]) -> ColumnElement:
    """SQL expression adding ``delta`` to ``Lead.lead_score`` within bounds.

    Used in a single UPDATE so concurrent increments are not lost.
    """
    raised = Lead.lead_score + delta
    return case(
        (raised > MAX_SCORE, MAX_SCORE),
        (raised < MIN_SCORE, MIN_SCORE),
        else_=raised,
    )


def can_transition(current: str, target: str, *, reopen: bool = False) -> bool:
    if target not in LEAD_STATUSES:
        return False
    if target == current:
        return True
    if reopen:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == "lost":
        return True
    return STATUS_RANK[target] > STATUS_RANK.get(current, 0)


def transition(lead: Lead, target: str, *, reopen: bool = False) -> Lead:
    if target not in LEAD_STATUSES:
        raise InvalidStatusTransition(f"Unknown status '{target}'")
    if not can_transition(lead.status, target, reopen=reopen):
        raise InvalidStatusTransition(
            f"Cannot move lead from '{lead.status}' to '{target}' without reopening"
        )
    if lead.status != target:
        lead.status = target
        lead.updated_at = datetime.utcnow()
    return lead


def advance(lead: Lead, target: str) -> bool:
    """Apply an automatic forward move; returns False when it would regress."""
    if lead.status == target or not can_transition(lead.status, target):
        return False
    transition(lead, target)
    return True


def recommended_status(score: Union[int, float]) -> str:
    return "qualified" if score > QUALIFIED_THRESHOLD else "new"


def apply_recommendation(lead: Lead, recommended: str) -> bool:
    """Scoring only decides the status of leads nobody has worked yet."""
    if lead.status != "new":
        return False
    return advance(lead, recommended)
