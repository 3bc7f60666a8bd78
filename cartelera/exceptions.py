class CarteleraError(Exception):
    """Base class for errors raised by the crawler."""


class ConfigurationError(CarteleraError):
    """Required configuration (e.g. store credentials) is missing or invalid. Fatal."""


class BrowserLaunchError(CarteleraError):
    """The browser process could not be started. Fatal."""


class NavigationError(CarteleraError):
    """A page could not be loaded after all navigation attempts."""

    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(message or f"Failed to navigate to {url}")


class ExtractionTimeoutError(CarteleraError):
    """One extraction attempt ran past its time limit and was cancelled."""

    def __init__(self, url: str, timeout_s: float):
        self.url = url
        self.timeout_s = timeout_s
        super().__init__(f"Extraction of {url} timed out after {timeout_s:.0f}s")
