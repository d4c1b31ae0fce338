import os
from dataclasses import dataclass

REQUIRED_BINDINGS = (
    "SSM_PARAMETER_NAME",
    "S3_BUCKET_NAME",
    "SQS_QUEUE_URL",
    "SNS_TOPIC_ARN",
    "DYNAMODB_TABLE_NAME",
)


class ConfigurationError(RuntimeError):
    """Raised at cold start when a required binding is missing."""

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__(
            f"Missing required environment variables: {', '.join(self.missing)}"
        )


@dataclass(frozen=True)
class Settings:
    parameter_name: str
    bucket_name: str
    queue_url: str
    topic_arn: str
    table_name: str


def load_settings(environ=None) -> Settings:
    environ = os.environ if environ is None else environ
    missing = [key for key in REQUIRED_BINDINGS if not environ.get(key)]
    if missing:
        raise ConfigurationError(missing)
    return Settings(*(environ[key] for key in REQUIRED_BINDINGS))
