# errors.py
"""Error kinds raised by the services and rendered by the Flask error handler."""


class KpiError(Exception):
    status_code = 500
    title = 'Internal Error'

    def __init__(self, message, title=None):
        super().__init__(message)
        self.message = message
        if title:
            self.title = title

    def to_dict(self):
        return {'success': False, 'title': self.title, 'message': self.message}


class NotFound(KpiError):
    status_code = 404
    title = 'Not Found'


class Conflict(KpiError):
    status_code = 409
    title = 'Conflict'


class ValidationError(KpiError):
    status_code = 400
    title = 'Validation Error'


class Forbidden(KpiError):
    status_code = 403
    title = 'Permission Denied'
