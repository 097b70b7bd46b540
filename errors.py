"""
Error taxonomy

Every failure the API reports maps to one of these classes. The status code
travels with the exception so the route layer can translate it into a JSON
error body in one place.
"""


class SubSentryError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class InvalidArgument(SubSentryError):
    status_code = 400


class Unauthorized(SubSentryError):
    status_code = 401


class InvalidToken(Unauthorized):
    pass


class NotFound(SubSentryError):
    status_code = 404


class Conflict(SubSentryError):
    status_code = 409


class Internal(SubSentryError):
    status_code = 500


class AuthGatewayError(Internal):
    """The identity provider could not be reached or answered unexpectedly"""
