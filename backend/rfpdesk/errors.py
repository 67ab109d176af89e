# errors.py
# Application error types. AppError subclasses carry the HTTP status the API answers with.


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class ExtractionError(AppError):
    """The extraction service call failed or returned something unusable."""

    status_code = 502


class TransportError(AppError):
    """Outbound mail could not be delivered."""

    status_code = 502


class MailboxError(Exception):
    """Connecting to, searching or fetching from the IMAP mailbox failed."""


class MessageParseError(Exception):
    pass
