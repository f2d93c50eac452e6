from __future__ import annotations


class ClientError(Exception):
    """Base class for every failure raised by the expense client."""


class AuthenticationRequired(ClientError):
    def __init__(self, message: str = "Authentication required but token is missing") -> None:
        super().__init__(message)


class RequestTimeout(ClientError):
    def __init__(self, message: str = "Request timed out. Server might be unreachable.") -> None:
        super().__init__(message)


class SessionExpired(ClientError):
    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(message)


class RequestFailed(ClientError):
    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message or f"Request failed with status {status_code}"
        super().__init__(self.message)


class InvalidCredentials(ClientError):
    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


class LoginFailed(ClientError):
    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        message = f"Login failed ({status_code})"
        if body:
            message += f": {body}"
        super().__init__(message)


class MalformedServerResponse(ClientError):
    def __init__(self, message: str = "Invalid server response (missing tokens)") -> None:
        super().__init__(message)


class NoActiveSession(ClientError):
    def __init__(self, message: str = "No active session to logout") -> None:
        super().__init__(message)


class SmsPermissionDenied(ClientError):
    def __init__(self, message: str = "SMS listening is not available") -> None:
        super().__init__(message)


class NetworkError(ClientError):
    def __init__(self, message: str = "Network request failed") -> None:
        super().__init__(message)
