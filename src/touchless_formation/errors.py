"""
Exception types raised inside the formation core.

None of these ever reach the host render loop: the tracking producer turns
landmark errors into a neutral result, and asset misuse is a programming
error surfaced at setup time.
"""


class TouchlessFormationError(Exception):
    """Base class for all errors raised by this package."""


class InvalidLandmarksError(TouchlessFormationError, ValueError):
    """Hand pose is malformed: wrong landmark count, non-finite values or zero palm scale."""


class FormationError(TouchlessFormationError):
    """Formation target data was supplied in an invalid way."""
