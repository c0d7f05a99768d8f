"""
Crisis intervention contract
Turns StressLevel events into intervention plans and routes the user's choice
"""

import datetime
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .config import (
    STRESS_LEVELS, NOTIFICATION_COOLDOWN_SECONDS, CRISIS_VIBRATION_PATTERN_MS,
    CRISIS_CONTACTS
)
from .results import StressLevel

logger = logging.getLogger(__name__)

LEVEL_MESSAGES = {
    "mild": "I notice you might be feeling a bit tense",
    "moderate": "I can sense some stress in your voice",
    "high": "I'm concerned about your stress levels",
    "crisis": "I'm here to help you right now",
}

MODAL_MIN_LEVEL = "moderate"


@dataclass
class CrisisActions:
    """User actions supplied by the UI layer"""

    dismiss: Callable[[], None]
    start_breathing_exercise: Callable[[], None]
    talk_to_guide: Callable[[], None]
    call_emergency: Callable[[], None]


@dataclass(frozen=True)
class InterventionPlan:
    stress_level: StressLevel
    message: str
    show_modal: bool
    urgent: bool
    actions: Tuple[str, ...]
    vibration_pattern_ms: Tuple[int, ...] = ()

    @property
    def support_text(self):
        if self.urgent:
            return "You're not alone. Let me help you find calm right now."
        return "Would you like some support to help you feel better?"


def build_intervention_plan(stress_level):
    """
    Describe how a stress level must be presented

    Crisis is urgent (vibration and pulsing) and is the only level that
    offers the emergency call. Moderate and above open the modal.
    """
    if stress_level.level == "calm":
        return None

    urgent = stress_level.is_crisis
    actions = ["start_breathing_exercise", "talk_to_guide", "dismiss"]
    if urgent:
        actions.insert(0, "call_emergency")

    return InterventionPlan(
        stress_level=stress_level,
        message=LEVEL_MESSAGES[stress_level.level],
        show_modal=stress_level.severity >= STRESS_LEVELS.index(MODAL_MIN_LEVEL),
        urgent=urgent,
        actions=tuple(actions),
        vibration_pattern_ms=tuple(CRISIS_VIBRATION_PATTERN_MS) if urgent else ()
    )


class CrisisInterventionHandler:
    """
    Consumes stress events from the monitoring controller

    Repeated events at the same or a lower severity inside the cooldown
    are suppressed; an escalation is always presented.
    """

    def __init__(self, actions, present, cooldown_seconds=NOTIFICATION_COOLDOWN_SECONDS,
                 clock=time.monotonic):
        self.actions = actions
        self.present = present
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock

        self.current_plan: Optional[InterventionPlan] = None
        self.last_presented_time = None
        self.last_presented_severity = None
        self.action_log = []

    def handle(self, stress_level):
        """
        Entry point matching the on_stress_detected callback signature
        """
        plan = build_intervention_plan(stress_level)
        if plan is None:
            return None

        now = self.clock()
        if self._suppressed(plan, now):
            logger.debug(f"Suppressed {stress_level.level} notification during cooldown")
            return None

        self.current_plan = plan
        self.last_presented_time = now
        self.last_presented_severity = stress_level.severity

        if plan.urgent:
            logger.warning(f"CRISIS stress level detected ({stress_level.confidence:.0%})")

        self.present(plan)
        return plan

    def _suppressed(self, plan, now):
        if self.last_presented_time is None:
            return False
        if now - self.last_presented_time >= self.cooldown_seconds:
            return False
        return plan.stress_level.severity <= self.last_presented_severity

    def perform(self, action_name):
        """
        Run one of the actions offered by the current plan
        """
        if self.current_plan is None:
            raise RuntimeError("No intervention is being presented")
        if action_name not in self.current_plan.actions:
            raise ValueError(
                f"Action {action_name!r} not available at level {self.current_plan.stress_level.level}"
            )

        callback = getattr(self.actions, action_name)
        self.action_log.append({
            "timestamp": datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "level": self.current_plan.stress_level.level,
            "action": action_name,
        })

        if action_name == "dismiss":
            self.current_plan = None

        callback()

    def emergency_contacts(self):
        return dict(CRISIS_CONTACTS)

    def get_action_history(self):
        return self.action_log.copy()
