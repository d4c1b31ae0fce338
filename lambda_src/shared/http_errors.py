import json

from aws_lambda_powertools import Logger
from aws_lambda_powertools.middleware_factory import lambda_handler_decorator

logger = Logger(child=True)


class HttpError(Exception):
    """An error that carries its own HTTP status code.

    ``expose`` defaults to True for client errors (status < 500), so their
    message is returned to the caller; server errors stay hidden.
    """

    def __init__(self, status_code: int, message: str, *, expose=None, headers=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.expose = status_code < 500 if expose is None else expose
        self.headers = dict(headers or {})

    def to_response(self) -> dict:
        return {
            "statusCode": self.status_code,
            "body": self.message,
            "headers": {"Content-Type": _content_type(self.message), **self.headers},
        }


def _content_type(message: str) -> str:
    try:
        parsed = json.loads(message)
    except (TypeError, ValueError):
        return "text/plain"
    return "text/plain" if isinstance(parsed, str) else "application/json"


@lambda_handler_decorator
def http_error_handler(handler, event, context, fallback_message=None):
    """Turn exposed HttpErrors into HTTP responses; re-raise everything else.

    With ``fallback_message`` set, errors that are not exposed become a 500
    response carrying that message instead of propagating.
    """
    try:
        return handler(event, context)
    except Exception as error:
        exposed = isinstance(error, HttpError) and error.expose
        if not exposed and fallback_message is None:
            raise
        logger.exception("Request failed")
        if not exposed:
            error = HttpError(500, fallback_message, expose=True)
        return error.to_response()
