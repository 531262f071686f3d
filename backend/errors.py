"""Domain errors shared by services, routers and the CLI."""


class StudyDashError(Exception):
    """Base class for StudyDash domain errors."""


class NotFoundError(StudyDashError):
    """The requested deck or card doesn't exist for this user."""


class ValidationError(StudyDashError):
    """Input was rejected (e.g. blank deck name or card text)."""
