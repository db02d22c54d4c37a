"""Exception types raised by the session core."""


class WebdelegateError(Exception):
    """Base class for webdelegate errors."""


class ConfigurationError(WebdelegateError, ValueError):
    """A request was rejected because its parameters are invalid.

    Raised for capture requests that want neither audio nor video and for
    pointer button indices outside the supported range. The triggering call
    fails; the session carries on.
    """


class ProvisioningError(WebdelegateError):
    """The browser for a session could not be launched or navigated."""
