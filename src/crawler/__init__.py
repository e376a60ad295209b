"""Browser-driven news crawler: sessions, extraction, fallbacks and scheduling.

The submodules are imported lazily by callers; this package only carries
the exception types shared across them.
"""


class CrawlerError(Exception):
    """Base class for crawler failures."""

    pass


class NavigationError(CrawlerError):
    """Raised when a page navigation times out or the browser rejects it.

    Callers skip the affected candidate; a failed listing navigation sends
    the source to the fallback chain instead.
    """

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        message = f"Navigation to {url} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SessionError(CrawlerError):
    """Raised when a browser process, context or page cannot be created."""

    pass


class StartupError(CrawlerError):
    """Raised when the daemon cannot acquire its shared browser at startup.

    This is the only failure that terminates the scheduler.
    """

    pass


__all__ = [
    "CrawlerError",
    "NavigationError",
    "SessionError",
    "StartupError",
]
