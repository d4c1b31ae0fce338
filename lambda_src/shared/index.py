import random

from aws_lambda_powertools import Logger

from http_errors import http_error_handler
from operations import run_operations
from service_clients import ServiceClients
from settings import load_settings

logger = Logger()

# Cold start: fail before any client exists if a binding is missing.
SETTINGS = load_settings()
CLIENTS = ServiceClients.create(SETTINGS)


@http_error_handler
@logger.inject_lambda_context
def handler(event, context):
    return run_operations(SETTINGS, CLIENTS, context.aws_request_id, rng=random)
