class DispatchError(Exception):
    """Base class for rejected dispatch and lifecycle operations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DispatchError):
    status_code = 404


class PermissionDeniedError(DispatchError):
    status_code = 403


class IllegalTransitionError(DispatchError):
    status_code = 409


class ConflictError(DispatchError):
    status_code = 409


class AuthenticationError(DispatchError):
    status_code = 401
