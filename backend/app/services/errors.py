"""Domain exceptions raised by the QRify services.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""


class QRifyError(Exception):
    """Base exception for all QRify service errors."""

    pass


class NotFoundError(QRifyError):
    """Raised when a slug, user or other resource does not exist."""

    pass


class GoneError(QRifyError):
    """Raised when a QR code has expired."""

    pass


class PasswordRequiredError(QRifyError):
    """Raised when a password-protected QR code is scanned without a password."""

    pass


class ForbiddenError(QRifyError):
    """Raised on a wrong password or a write outside the caller's ownership."""

    pass


class InvalidArgumentError(QRifyError):
    """Raised when a malformed identifier reaches a lookup."""

    pass


class UpstreamUnavailableError(QRifyError):
    """Raised inside the geolocation module when a provider gives no usable answer.

    Never escapes ``app.services.geolocation``.
    """

    pass


class PersistenceError(QRifyError):
    """Raised when a storage operation fails."""

    pass
