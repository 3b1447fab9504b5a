"""
Non-fatal findings of the geometry pipeline.

Every stage keeps processing when it meets bad geometry: the offending shape,
chain or loop is skipped and a CutWarning describing it is appended to the
result. Only invalid configuration raises (see exceptions.py).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class WarningType(Enum):
    CONNECTIVITY = "connectivity"  # branch point with more than two neighbours
    CLOSURE_MISMATCH = "closure_mismatch"
    CONTAINMENT_AMBIGUITY = "containment_ambiguity"
    OFFSET_COLLAPSE = "offset_collapse"
    SELF_INTERSECTION_UNRESOLVED = "self_intersection_unresolved"
    DEGENERATE_SHAPE = "degenerate_shape"
    OPEN_CHAIN = "open_chain"
    BOUNDARY_CROSSING = "boundary_crossing"
    EXTENSION_LIMIT = "extension_limit"


@dataclass(frozen=True)
class CutWarning:
    type: WarningType
    message: str
    chain_id: Optional[str] = None
    shape_ids: Tuple[str, ...] = ()
    point: Optional[complex] = None
    value: Optional[float] = None

    def __str__(self):
        return f"{self.type.value}: {self.message}"


def report(warnings, channel, warning_type, message, **kwargs):
    """
    Append a warning to the result list and echo it to the channel.
    """
    warning = CutWarning(warning_type, message, **kwargs)
    warnings.append(warning)
    if channel:
        channel(str(warning))
    return warning
