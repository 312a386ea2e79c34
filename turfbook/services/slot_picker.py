"""Contiguous slot range selection.

Mirrors how a customer picks slots: the first click chooses a start slot,
a second click on a slot reachable through free, back-to-back slots commits
the range in between. Final validation still happens at booking creation.
"""
import enum
from typing import List, Optional, Sequence

from turfbook.schemas.slot import TimeSlot


class SelectionState(str, enum.Enum):
    IDLE = "idle"
    RANGE_START = "range_start"


def contiguous_run(slots: Sequence[TimeSlot], start: TimeSlot) -> List[TimeSlot]:
    """Maximal chain of available slots beginning at ``start``.

    Each next slot must start exactly where the previous one ends; the chain
    stops at the first gap or unavailable slot.
    """
    by_start = {slot.start_time: slot for slot in slots if slot.is_available}
    run = [start]
    current = start
    while True:
        following = by_start.get(current.end_time)
        if following is None or following is current:
            break
        run.append(following)
        current = following
    return run


class SlotRangeSelector:
    """Selection state for one slot grid."""

    def __init__(self, slots: Sequence[TimeSlot], single_slot_only: bool = False):
        self.slots = list(slots)
        self.single_slot_only = single_slot_only
        self.state = SelectionState.IDLE
        self.start: Optional[TimeSlot] = None
        self.selection: List[TimeSlot] = []

    def clear(self) -> List[TimeSlot]:
        self.state = SelectionState.IDLE
        self.start = None
        self.selection = []
        return self.selection

    def click(self, slot: TimeSlot) -> List[TimeSlot]:
        """Apply a click on ``slot`` and return the current selection."""
        if not slot.is_available:
            return self.selection

        if self.selection and self.selection[0].start_time == slot.start_time:
            return self.clear()

        if self.single_slot_only:
            self.selection = [slot]
            return self.selection

        if self.state == SelectionState.IDLE:
            self.state = SelectionState.RANGE_START
            self.start = slot
            self.selection = [slot]
            return self.selection

        run = contiguous_run(self.slots, self.start)
        for index, candidate in enumerate(run):
            if candidate.start_time == slot.start_time:
                self.selection = run[: index + 1]
                self.state = SelectionState.IDLE
                self.start = None
                return self.selection

        # Not reachable from the current start: begin a new range here
        self.start = slot
        self.selection = [slot]
        return self.selection
