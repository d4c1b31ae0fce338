"""Tests for the Lambda entry point and the HTTP error middleware."""

import json

import pytest
from botocore.exceptions import ClientError

from conftest import HANDLER_SOURCE, isolated_entry, make_clients


@pytest.fixture
def entry(bindings):
    with isolated_entry(HANDLER_SOURCE) as module:
        yield module


def test_handler_returns_success_envelope(entry, monkeypatch, clients, lambda_context):
    monkeypatch.setattr(entry, "CLIENTS", clients)

    result = entry.handler({"ignored": True}, lambda_context)

    assert result == {"statusCode": 200, "body": {"message": "Operations completed successfully"}}


def test_handler_uses_request_id_as_item_key(entry, monkeypatch, clients, calls, lambda_context):
    monkeypatch.setattr(entry, "CLIENTS", clients)
    lambda_context.aws_request_id = "c0ffee-1234"

    entry.handler({}, lambda_context)

    service, op, kwargs = calls[-1]
    assert (service, op) == ("dynamodb", "put_item")
    assert kwargs["Item"]["id"] == "c0ffee-1234"


def test_handler_settings_come_from_environment(entry, bindings):
    assert entry.SETTINGS.queue_url == bindings["SQS_QUEUE_URL"]
    assert entry.SETTINGS.table_name == bindings["DYNAMODB_TABLE_NAME"]


def test_handler_propagates_downstream_errors(entry, monkeypatch, calls, lambda_context):
    error = ClientError({"Error": {"Code": "AuthorizationError", "Message": "no"}}, "Publish")
    monkeypatch.setattr(entry, "CLIENTS", make_clients(calls, fail_on={"sns": {"publish": error}}))

    with pytest.raises(ClientError):
        entry.handler({}, lambda_context)

    assert "put_item" not in [op for _, op, _ in calls]


class TestHttpErrorHandler:
    """Tests for http_error_handler."""

    def _wrap(self, http_errors, error, **options):
        def failing(event, context):
            raise error

        if options:
            return http_errors.http_error_handler(failing, **options)
        return http_errors.http_error_handler(failing)

    def test_client_error_becomes_response(self, handler_modules, lambda_context):
        http_errors = handler_modules.http_errors
        wrapped = self._wrap(http_errors, http_errors.HttpError(404, "Not here"))

        response = wrapped({}, lambda_context)

        assert response == {
            "statusCode": 404,
            "body": "Not here",
            "headers": {"Content-Type": "text/plain"},
        }

    def test_json_message_gets_json_content_type(self, handler_modules, lambda_context):
        http_errors = handler_modules.http_errors
        message = json.dumps({"error": "bad input"})
        wrapped = self._wrap(http_errors, http_errors.HttpError(400, message))

        response = wrapped({}, lambda_context)

        assert response["headers"]["Content-Type"] == "application/json"
        assert json.loads(response["body"]) == {"error": "bad input"}

    def test_server_error_is_not_exposed(self, handler_modules, lambda_context):
        http_errors = handler_modules.http_errors
        error = http_errors.HttpError(503, "backend down")
        wrapped = self._wrap(http_errors, error)

        with pytest.raises(http_errors.HttpError) as exc_info:
            wrapped({}, lambda_context)

        assert exc_info.value is error
        assert error.expose is False

    def test_plain_errors_propagate(self, handler_modules, lambda_context):
        wrapped = self._wrap(handler_modules.http_errors, KeyError("boom"))

        with pytest.raises(KeyError):
            wrapped({}, lambda_context)

    def test_fallback_message_replaces_hidden_errors(self, handler_modules, lambda_context):
        wrapped = self._wrap(
            handler_modules.http_errors, KeyError("boom"), fallback_message="Something went wrong"
        )

        response = wrapped({}, lambda_context)

        assert response["statusCode"] == 500
        assert response["body"] == "Something went wrong"

    def test_success_passes_through(self, handler_modules, lambda_context):
        wrapped = handler_modules.http_errors.http_error_handler(lambda event, context: {"ok": 1})

        assert wrapped({}, lambda_context) == {"ok": 1}
