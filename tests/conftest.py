"""Pytest configuration and fixtures."""

import importlib
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure tests always import the local tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

HANDLER_SOURCE = ROOT / "lambda_src" / "shared"
HANDLER_MODULES = ("index", "settings", "service_clients", "operations", "http_errors")

# boto3 clients are built at cold start and need a region, never credentials.
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "hybrid-module-lambda-test")

BINDINGS = {
    "SSM_PARAMETER_NAME": "my-parameter-test0001",
    "S3_BUCKET_NAME": "my-bucket-test0001",
    "SQS_QUEUE_URL": "https://sqs.us-east-1.amazonaws.com/123456789012/my-queue-test0001",
    "SNS_TOPIC_ARN": "arn:aws:sns:us-east-1:123456789012:my-topic-test0001",
    "DYNAMODB_TABLE_NAME": "my-table-test0001",
}


class RecordingService:
    """Stands in for one boto3 collaborator and appends every call to a shared log."""

    def __init__(self, service, calls, fail_on=None, response=None):
        self._service = service
        self._calls = calls
        self._fail_on = fail_on or {}
        self._response = response or {}

    def _record(self, operation, kwargs):
        self._calls.append((self._service, operation, kwargs))
        if operation in self._fail_on:
            raise self._fail_on[operation]
        return self._response.get(operation, {})

    def get_parameter(self, **kwargs):
        return self._record("get_parameter", kwargs)

    def put_object(self, **kwargs):
        return self._record("put_object", kwargs)

    def send_message(self, **kwargs):
        return self._record("send_message", kwargs)

    def publish(self, **kwargs):
        return self._record("publish", kwargs)

    def put_item(self, **kwargs):
        return self._record("put_item", kwargs)


def make_clients(calls, fail_on=None):
    fail_on = fail_on or {}
    parameter = {"get_parameter": {"Parameter": {"Name": BINDINGS["SSM_PARAMETER_NAME"], "Version": 1}}}
    return SimpleNamespace(
        ssm=RecordingService("ssm", calls, fail_on.get("ssm"), parameter),
        s3=RecordingService("s3", calls, fail_on.get("s3")),
        sqs=RecordingService("sqs", calls, fail_on.get("sqs")),
        sns=RecordingService("sns", calls, fail_on.get("sns")),
        table=RecordingService("dynamodb", calls, fail_on.get("dynamodb")),
    )


@dataclass
class FakeLambdaContext:
    aws_request_id: str = "req-0001"
    function_name: str = "test-lambda"
    memory_limit_in_mb: int = 1024
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test-lambda"


@contextmanager
def isolated_path(directory):
    """Put one directory first on sys.path and forget every handler module afterwards."""
    saved_path = list(sys.path)
    saved_modules = {n: sys.modules.pop(n) for n in HANDLER_MODULES if n in sys.modules}
    sys.path.insert(0, str(directory))
    importlib.invalidate_caches()
    try:
        yield
    finally:
        sys.path[:] = saved_path
        for name in HANDLER_MODULES:
            sys.modules.pop(name, None)
        sys.modules.update(saved_modules)


@contextmanager
def isolated_entry(artifact_dir):
    """Import the handler entry module the way the Lambda runtime would."""
    with isolated_path(artifact_dir):
        yield importlib.import_module("index")


@pytest.fixture
def bindings(monkeypatch):
    for key, value in BINDINGS.items():
        monkeypatch.setenv(key, value)
    return dict(BINDINGS)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def clients(calls):
    return make_clients(calls)


@pytest.fixture
def lambda_context():
    return FakeLambdaContext()


@pytest.fixture
def handler_modules():
    """The handler's helper modules, imported straight from the source tree."""
    with isolated_path(HANDLER_SOURCE):
        yield SimpleNamespace(
            settings=importlib.import_module("settings"),
            operations=importlib.import_module("operations"),
            http_errors=importlib.import_module("http_errors"),
        )
