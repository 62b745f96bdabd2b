"""Exceptions raised by the ResourceV2 admission plugin."""


class AdmissionError(Exception):
    """
    Base class for failures reported back to the admission framework.

    Attributes:
        code: HTTP-style status code for the rejection
        message: Human-readable reason
    """

    code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(AdmissionError):
    """The object does not have the shape of a Pod."""

    code = 400


class DuplicateIdentifierError(AdmissionError):
    """The identifier source kept returning identifiers already in use."""

    code = 500


class PluginConfigError(ValueError):
    """Malformed plugin configuration."""
