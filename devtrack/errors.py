from falcon import (
    HTTP_BAD_REQUEST, HTTP_CONFLICT, HTTP_FORBIDDEN, HTTP_INTERNAL_SERVER_ERROR, HTTP_NOT_FOUND,
    HTTP_UNAUTHORIZED,
)


class ResourceError(Exception):
    status = HTTP_BAD_REQUEST

    def __init__(self, message=None, errors=None):
        super().__init__(message)

        self.message = message
        self.errors = errors

    def to_dict(self):
        if self.errors is not None:
            return {'errors': self.errors}
        return {'message': self.message}


class InvalidRequest(ResourceError):
    status = HTTP_BAD_REQUEST


class Forbidden(ResourceError):
    status = HTTP_FORBIDDEN


class NotFound(ResourceError):
    status = HTTP_NOT_FOUND


class Conflict(ResourceError):
    status = HTTP_CONFLICT


class PersistenceError(ResourceError):
    status = HTTP_INTERNAL_SERVER_ERROR


class Unauthorized(ResourceError):
    status = HTTP_UNAUTHORIZED
