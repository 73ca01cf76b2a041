from flask import jsonify


class ServiceError(Exception):
    """Base class for failures the API reports with a specific status code."""

    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self):
        body = {"status": "error", "message": self.message}
        if self.details:
            body["details"] = self.details
        return jsonify(body), self.status_code


class ValidationError(ServiceError):
    status_code = 400

    def __init__(self, errors, message=None):
        self.errors = list(errors)
        super().__init__(message or self.errors[0].message)

    def to_response(self):
        return (
            jsonify(
                {
                    "status": "error",
                    "message": self.message,
                    "errors": [
                        {"field": err.field, "message": err.message} for err in self.errors
                    ],
                }
            ),
            self.status_code,
        )


class AuthError(ServiceError):
    status_code = 401


class NotFoundError(ServiceError):
    status_code = 404


class InvalidTransitionError(ServiceError):
    status_code = 409


class ScheduleConflictError(ServiceError):
    status_code = 409


class RecordInUseError(ServiceError):
    status_code = 409


class PaymentProviderError(ServiceError):
    """The payment provider was reachable but refused or failed the request."""

    status_code = 502


class PaymentProviderNotConfigured(ServiceError):
    """No provider credential is configured and fabricated links are disabled."""

    status_code = 503
