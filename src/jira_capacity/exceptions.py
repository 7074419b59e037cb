"""Exception hierarchy for JIRA Capacity."""


class CapacityError(Exception):
    """Base exception for capacity report errors."""

    pass


class ConfigNotFoundError(CapacityError):
    """Configuration file not found."""

    pass


class InvalidConfigError(CapacityError):
    """Configuration is invalid."""

    pass


class JiraAuthError(CapacityError):
    """JIRA authentication failed."""

    pass


class JiraConnectionError(CapacityError):
    """Cannot connect to JIRA server."""

    pass


class InvalidUploadError(CapacityError):
    """Uploaded baseline file was rejected."""

    pass


class BaselineParseError(CapacityError):
    """Baseline spreadsheet could not be read."""

    pass
