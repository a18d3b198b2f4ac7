"""
Domain errors raised by the service layer.

The HTTP layer maps each class to a status code; `message` is what the caller sees.
"""


class RatingsError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(RatingsError):
    """A field broke one of the validation rules; message names the first one."""
    status_code = 422


class InvalidCredentials(RatingsError):
    status_code = 401

    def __init__(self, message: str = "Invalid credentials. Check your email and password."):
        super().__init__(message)


class DuplicateEmail(RatingsError):
    status_code = 409

    def __init__(self, message: str = "A user with this email already exists."):
        super().__init__(message)


class UserNotFound(RatingsError):
    status_code = 404

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class StoreNotFound(RatingsError):
    status_code = 404

    def __init__(self, message: str = "Store not found"):
        super().__init__(message)


class InvalidScore(RatingsError):
    status_code = 422

    def __init__(self, message: str = "Score must be a whole number from 1 to 5"):
        super().__init__(message)
