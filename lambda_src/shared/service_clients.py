from dataclasses import dataclass
from typing import Any

import boto3


@dataclass(frozen=True)
class ServiceClients:
    """Process-wide collaborators, built once at cold start and reused."""

    ssm: Any
    s3: Any
    sqs: Any
    sns: Any
    table: Any

    @classmethod
    def create(cls, settings) -> "ServiceClients":
        return cls(
            ssm=boto3.client("ssm"),
            s3=boto3.client("s3"),
            sqs=boto3.client("sqs"),
            sns=boto3.client("sns"),
            table=boto3.resource("dynamodb").Table(settings.table_name),
        )
