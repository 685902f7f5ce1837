"""Error types raised by focusroute.

Only ConfigurationMissing is allowed to end a turn early. Everything else is
recovered where it happens and downgraded to "absent / zero / COLD".
"""


class FocusrouteError(Exception):
    """Base class for focusroute errors."""


class ConfigurationMissing(FocusrouteError, FileNotFoundError):
    """No usable docs root or keyword configuration. Fatal for the turn."""


class ContentNotFound(FocusrouteError, LookupError):
    """A fragment id does not map to readable content."""

    def __init__(self, fragment_id: str, reason: str = "not found"):
        super().__init__(f"{fragment_id}: {reason}")
        self.fragment_id = fragment_id
        self.reason = reason


class PersistenceFailure(FocusrouteError, OSError):
    """State or history could not be written."""
