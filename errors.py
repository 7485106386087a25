"""
Error taxonomy shared by the services.

Each error knows the HTTP status it maps to; the exception handlers in
main.py turn them into JSON bodies.
"""


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(ApiError):
    status_code = 404


class InvalidInput(ApiError):
    status_code = 400


class Conflict(ApiError):
    status_code = 409


class Unauthenticated(ApiError):
    status_code = 401
