"""Select the maneuver instruction to show, and decide when it should be spoken."""

import html
import logging
import re
from dataclasses import dataclass

from navtracker.core.geometry import StepMatch, haversine_m, nearest_step
from navtracker.core.progress import format_distance, round_half_up
from navtracker.schemas.navigation import Instruction, PositionFix
from navtracker.schemas.route import Leg, Step

logger = logging.getLogger(__name__)

# Surface the next maneuver once its start is this close
UPCOMING_RADIUS_M = 300.0
# Speak it once it is this close
VOICE_TRIGGER_RADIUS_M = 200.0

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")
_LEADING_TURN_RE = re.compile(r"^Turn\s+")
_ONTO_RE = re.compile(r"\s+onto\s+")
_TOWARDS_RE = re.compile(r"\s+towards\s+")


def clean_instruction(text: str) -> str:
    """Plain-text instruction: no markup, single spaces, no leading 'Turn'."""
    text = _TAG_RE.sub(" ", text or "")
    text = html.unescape(text)
    text = _SPACE_RE.sub(" ", text).strip()
    text = _LEADING_TURN_RE.sub("", text)
    text = _ONTO_RE.sub(" onto ", text)
    text = _TOWARDS_RE.sub(" towards ", text)
    return text.strip()


@dataclass(frozen=True)
class InstructionSelection:
    instruction: Instruction
    step_index: int  # nearest step
    target_index: int  # step the instruction refers to
    upcoming: bool
    voice_eligible: bool = False


class InstructionSelector:
    """Picks the current instruction and tracks which steps were already announced.

    The announcement memory is per session: call reset() when a new route starts.
    """

    def __init__(
        self,
        upcoming_radius_m: float = UPCOMING_RADIUS_M,
        voice_trigger_radius_m: float = VOICE_TRIGGER_RADIUS_M,
    ) -> None:
        self.upcoming_radius_m = upcoming_radius_m
        self.voice_trigger_radius_m = voice_trigger_radius_m
        self._announced: set[tuple[int, int]] = set()  # (leg_index, step_index)

    def reset(self) -> None:
        self._announced.clear()

    def mark_announced(self, leg_index: int, step_index: int) -> None:
        """Record that the maneuver at step_index was actually spoken."""
        self._announced.add((leg_index, step_index))

    def select(
        self,
        leg: Leg,
        fix: PositionFix,
        match: StepMatch | None = None,
        leg_index: int = 0,
    ) -> InstructionSelection | None:
        steps = leg.steps
        if match is None:
            match = nearest_step(steps, fix.lat, fix.lng)
        if match is None:
            return None

        idx = match.index
        if idx < len(steps) - 1:
            next_step = steps[idx + 1]
            distance = haversine_m(
                fix.lat, fix.lng,
                next_step.start_location.lat, next_step.start_location.lng,
            )
            if distance <= self.upcoming_radius_m:
                instruction = Instruction(
                    text=clean_instruction(next_step.instruction_text),
                    distance_meters=distance,
                    maneuver_kind=next_step.maneuver_kind,
                )
                eligible = self._announcement_due(leg_index, idx + 1, distance)
                return InstructionSelection(
                    instruction=instruction,
                    step_index=idx,
                    target_index=idx + 1,
                    upcoming=True,
                    voice_eligible=eligible,
                )

        return InstructionSelection(
            instruction=self._continue_instruction(steps[idx]),
            step_index=idx,
            target_index=idx,
            upcoming=False,
        )

    def _announcement_due(self, leg_index: int, step_index: int, distance: float) -> bool:
        if not 0 < distance <= self.voice_trigger_radius_m:
            return False
        if (leg_index, step_index) in self._announced:
            return False
        logger.debug("Step %d of leg %d due for announcement at %.0fm", step_index, leg_index, distance)
        return True

    @staticmethod
    def _continue_instruction(step: Step) -> Instruction:
        text = f"Continue {clean_instruction(step.instruction_text)}".strip()
        return Instruction(text=text, distance_meters=0.0, maneuver_kind="straight")


def format_spoken_distance(meters: float) -> str:
    """Distance as spoken: tens of metres below a kilometre, else one-decimal km."""
    if meters < 1000:
        return f"{max(10, round_half_up(meters / 10) * 10)} m"
    return format_distance(meters)


def announcement_text(instruction: Instruction) -> str:
    return f"{instruction.text} in {format_spoken_distance(instruction.distance_meters)}"
