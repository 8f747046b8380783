"""
Error taxonomy shared by the mail services.

Services raise these; routers translate them into ``HTTPException`` using the
``status_code`` carried by each class. Partial failure of a batch operation is
not an exception: it is reported per item in ``FolderTransitionResult``.
"""


class MailDeckError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(MailDeckError):
    """Missing or malformed request fields."""

    status_code = 400


class AuthError(MailDeckError):
    """Missing, malformed, or expired bearer token."""

    status_code = 401


class SenderNotAllowedError(MailDeckError):
    """The requested From address is not on the sender allow-list."""

    status_code = 403


class NotFoundError(MailDeckError):
    """The requested message part does not exist."""

    status_code = 404


class UpstreamServiceError(MailDeckError):
    """The object store or the outbound mail service failed or timed out."""

    status_code = 500
