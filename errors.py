class PinStudioError(Exception):
    """Base class for every failure the pin pipeline reports."""


class ConfigurationError(PinStudioError):
    """The API key is missing. Raised before any network call."""


class TransportError(PinStudioError):
    """The Gemini endpoint answered with a non-success status, or could not
    be reached at all (status is None)."""

    def __init__(self, status, message=""):
        self.status = status
        prefix = "Gemini request failed" if status is None else f"Gemini request failed ({status})"
        super().__init__(f"{prefix}: {message}" if message else prefix)


class InvalidModelOutput(PinStudioError):
    pass


class ImageGenerationFailed(PinStudioError):
    pass


class GenerationSuperseded(PinStudioError):
    """A newer generation for the same session replaced this one."""


GENERIC_MESSAGE = "An unexpected error occurred. Please try again."
CREDENTIAL_MESSAGE = "The API key is invalid or lacks permissions. Please check your setup."

_CREDENTIAL_MARKERS = ("api key not valid", "permission_denied")


def friendly_error_message(exc):
    message = str(exc)
    if not message:
        return GENERIC_MESSAGE
    lowered = message.lower()
    if any(marker in lowered for marker in _CREDENTIAL_MARKERS):
        return CREDENTIAL_MESSAGE
    return message
