import random

from aws_lambda_powertools import Logger

logger = Logger(child=True)

RANDOM_OBJECT_KEY = "random-number.txt"
SUCCESS_MESSAGE = "Operations completed successfully"


def success_envelope() -> dict:
    return {"statusCode": 200, "body": {"message": SUCCESS_MESSAGE}}


def generate_random_number(rng=random) -> int:
    return rng.randrange(100)


def run_operations(settings, clients, request_id: str, rng=random) -> dict:
    """Read the parameter, then write the same random number to S3, SQS, SNS and DynamoDB.

    Calls run one after another; any failure propagates to the caller.
    """
    random_number = generate_random_number(rng)
    logger.info(f"Generated random number: {random_number}")
    body = str(random_number)

    # Result is not consumed yet; the call exercises the read grant.
    parameter = clients.ssm.get_parameter(Name=settings.parameter_name)
    logger.debug(
        "Fetched parameter",
        extra={"version": (parameter or {}).get("Parameter", {}).get("Version")},
    )

    clients.s3.put_object(Bucket=settings.bucket_name, Key=RANDOM_OBJECT_KEY, Body=body)

    clients.sqs.send_message(QueueUrl=settings.queue_url, MessageBody=body)

    clients.sns.publish(TopicArn=settings.topic_arn, Message=body)

    clients.table.put_item(Item={"id": request_id, "randomNumber": random_number})

    return success_envelope()
