"""Provisioning error taxonomy and vendor-message classification."""


class ProvisionError(Exception):
    """Base class for failures that abort a provisioning run."""

    def __init__(self, message, hint=""):
        super().__init__(message)
        self.hint = hint


class CredentialInvalidError(ProvisionError):
    pass


class CreationRejectedError(ProvisionError):
    """The vendor refused the create call."""


class NameConflictError(CreationRejectedError):
    pass


class LocationDisabledError(CreationRejectedError):
    pass


class TypeUnavailableError(CreationRejectedError):
    pass


class CreationFatalError(CreationRejectedError):
    """Unclassified creation failure; never retried."""


class BootTimeoutError(ProvisionError):
    """The server was created but never reported running."""

    def __init__(self, message, server_id, hint=""):
        super().__init__(message, hint=hint)
        self.server_id = server_id


_UNAVAILABLE_MARKERS = ("unavailable", "not available", "sold out", "unsupported")


def classify_creation_error(message) -> type[CreationRejectedError]:
    """Return the CreationRejectedError subclass matching a vendor message."""
    text = (message or "").lower()
    if "already" in text and ("used" in text or "in use" in text):
        return NameConflictError
    if "location disabled" in text:
        return LocationDisabledError
    if any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return TypeUnavailableError
    return CreationFatalError


class InvalidRequestError(ProvisionError):
    """A deployment request failed validation before any vendor call."""
