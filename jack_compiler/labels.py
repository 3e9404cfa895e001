"""
Branch label generation.

Each if/while gets a pair of labels. Pairs are numbered per
(class, subroutine, construct) key, starting at 0, and the label text is
qualified with the class and subroutine name so no two pairs in a class
can ever collide.
"""

from __future__ import annotations
import enum
from typing import Dict, Tuple

from .errors import PreconditionError


class ControlFlow(enum.Enum):
    IF = "if"
    WHILE = "while"


# construct -> (first label, second label)
LABEL_PREFIXES: Dict[ControlFlow, Tuple[str, str]] = {
    ControlFlow.IF: ("IF_FALSE", "IF_END"),
    ControlFlow.WHILE: ("WHILE_EXP", "WHILE_END"),
}


class LabelGenerator:
    """Hands out unique label pairs for one compiled unit."""

    def __init__(self):
        self._counters: Dict[Tuple[str, str, ControlFlow], int] = {}

    def next_pair(self, construct, class_name: str, subroutine_name: str) -> Tuple[str, str]:
        """Return the next (false/start, end) label pair for ``construct``.

        ``construct`` is a ControlFlow or its string value ("if", "while").
        """
        if not class_name or not subroutine_name:
            raise PreconditionError("Cannot generate a label outside a class subroutine")
        try:
            construct = ControlFlow(construct)
        except ValueError:
            raise PreconditionError(f"Unknown control-flow construct: {construct!r}") from None

        key = (class_name, subroutine_name, construct)
        count = self._counters.get(key, -1) + 1
        self._counters[key] = count

        first, second = LABEL_PREFIXES[construct]
        scope = f"{class_name}.{subroutine_name}"
        return f"{scope}.{first}{count}", f"{scope}.{second}{count}"
