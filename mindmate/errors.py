# errors.py
"""Failure taxonomy shared by the store, the connection cache and the AI gateway.

Every failure that can reach a client is one of these classes. They are raised
where the raw failure is observed and rendered unchanged by the app's error
handler, so nothing downstream has to inspect library exceptions.
"""


class MindMateError(Exception):
    kind = "InternalError"
    status_code = 500
    public_message = "Something went wrong"

    def __init__(self, message=None, detail=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        # Only rendered outside production.
        self.detail = detail or {}


class InvalidInput(MindMateError):
    kind = "InvalidInput"
    status_code = 400
    public_message = "Invalid input"

    def __init__(self, message=None, detail=None):
        super().__init__(message, detail)
        # Client-correctable, so the message itself is safe to show.
        self.public_message = self.message


class NotFound(MindMateError):
    kind = "NotFound"
    status_code = 404
    public_message = "Entry not found"


class ConfigurationError(MindMateError):
    kind = "ConfigurationError"
    status_code = 500
    public_message = "AI service configuration error"


class UpstreamTimeout(MindMateError):
    kind = "Timeout"
    status_code = 504
    public_message = "AI service timed out. Please try again later."


class RateLimited(MindMateError):
    kind = "RateLimited"
    status_code = 429
    public_message = "Rate limit exceeded. Please try again later."

    def __init__(self, message=None, detail=None, retry_after=None):
        super().__init__(message, detail)
        self.retry_after = retry_after


class UpstreamUnavailable(MindMateError):
    kind = "UpstreamUnavailable"
    status_code = 502
    public_message = "AI service is currently unavailable. Please try again later."

    def __init__(self, message=None, detail=None, status_code=None):
        super().__init__(message, detail)
        if status_code is not None:
            self.status_code = status_code


class UpstreamProtocolError(MindMateError):
    kind = "UpstreamProtocolError"
    status_code = 500
    public_message = "Invalid response from AI service"


class StoreUnavailable(MindMateError):
    kind = "StoreUnavailable"
    status_code = 503
    public_message = "Database temporarily unavailable"
