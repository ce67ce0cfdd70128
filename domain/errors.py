"""Errors raised by the planner. `str(error)` is always fit to show a user."""


class RecipePlannerError(Exception):
    pass


class NetworkError(RecipePlannerError):
    """A remote call failed."""


class InvalidRequest(NetworkError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Invalid URL")


class InvalidResponse(NetworkError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Invalid server response")


class NoConnectivity(NetworkError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("No internet connection")


class Timeout(NetworkError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Request timed out")


class HttpStatus(NetworkError):
    def __init__(self, code: int, detail: str = "") -> None:
        self.code = code
        self.detail = detail
        super().__init__(f"Server error: {code}")


class DecodeFailure(NetworkError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Data parsing error: {detail}")


class Unknown(NetworkError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Unknown error: {detail}")


class AuthRequired(RecipePlannerError):
    def __init__(self) -> None:
        super().__init__("You need to be signed in to do that")


class AuthFailure(RecipePlannerError):
    """The auth provider turned the credentials down."""

    MESSAGES = {
        "EMAIL_EXISTS": "An account with this email already exists",
        "EMAIL_NOT_FOUND": "No account found for this email",
        "INVALID_PASSWORD": "Incorrect password",
        "INVALID_LOGIN_CREDENTIALS": "Incorrect email or password",
        "USER_DISABLED": "This account has been disabled",
        "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts, try again later",
        "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": "Please sign in again",
        "TOKEN_EXPIRED": "Please sign in again",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        # Provider reasons look like "WEAK_PASSWORD : Password should be ..."
        code = reason.split(":", 1)[0].strip()
        super().__init__(self.MESSAGES.get(code, f"Authentication failed: {reason}"))


class ValidationFailure(RecipePlannerError):
    pass


class NotAuthorized(RecipePlannerError):
    pass
