"""
Program reference: a session or enrollment belongs to exactly one
Focus-One (one-to-one) or one Cohort (group) program.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class FocusOneRef:
    id: str
    kind: Literal["focus_one"] = "focus_one"


@dataclass(frozen=True)
class CohortRef:
    id: str
    kind: Literal["cohort"] = "cohort"


ProgramRef = Union[FocusOneRef, CohortRef]


def program_from_columns(focus_one_id: Optional[str], cohort_id: Optional[str]) -> ProgramRef:
    """
    Build the reference from the two storage columns.

    Raises:
        ValueError: if both or neither are set
    """
    if focus_one_id and cohort_id:
        raise ValueError("A program reference cannot be both a Focus-One and a cohort")
    if focus_one_id:
        return FocusOneRef(focus_one_id)
    if cohort_id:
        return CohortRef(cohort_id)
    raise ValueError("A program reference needs a Focus-One or a cohort")


def program_to_columns(program: ProgramRef) -> dict[str, Optional[str]]:
    if isinstance(program, FocusOneRef):
        return {"focus_one_id": program.id, "cohort_id": None}
    return {"focus_one_id": None, "cohort_id": program.id}
