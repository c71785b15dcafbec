"""Patrol exceptions."""


class PatrolError(Exception):
    """Base class for patrol errors."""
    pass


class DetectorError(PatrolError):
    """A detector could not complete its check. Caught at the detector boundary."""
    pass
