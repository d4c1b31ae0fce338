from dataclasses import dataclass
from enum import Enum

from constructs import Construct
from aws_cdk import (
    Stack,
    aws_dynamodb as dynamodb,
    aws_iam as iam,
    aws_s3 as s3,
    aws_sns as sns,
    aws_sqs as sqs,
    aws_ssm as ssm,
)

UNIQUE_ID_LENGTH = 8
DEFAULT_PREFIX = "my"
LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"
BASIC_EXECUTION_POLICY = "service-role/AWSLambdaBasicExecutionRole"


class ResourceKind(str, Enum):
    PARAMETER = "parameter"
    BUCKET = "bucket"
    TABLE = "table"
    TOPIC = "topic"
    QUEUE = "queue"


# One grant per kind, limited to what the handler does with the resource.
GRANTS = {
    ResourceKind.PARAMETER: "grant_read",
    ResourceKind.BUCKET: "grant_write",
    ResourceKind.QUEUE: "grant_send_messages",
    ResourceKind.TOPIC: "grant_publish",
    ResourceKind.TABLE: "grant_write_data",
}


class ResourceNameCollisionError(ValueError):
    """A resource name is already taken by another resource of the same kind in the stack."""


@dataclass(frozen=True)
class ResourceReferences:
    parameter_name: str
    bucket_name: str
    queue_url: str
    topic_arn: str
    table_name: str

    def to_environment(self) -> dict[str, str]:
        return {
            "SSM_PARAMETER_NAME": self.parameter_name,
            "S3_BUCKET_NAME": self.bucket_name,
            "SQS_QUEUE_URL": self.queue_url,
            "SNS_TOPIC_ARN": self.topic_arn,
            "DYNAMODB_TABLE_NAME": self.table_name,
        }


def unique_id_for(scope: Construct) -> str:
    """Short, synth-stable suffix derived from the stack's construct address."""
    return Stack.of(scope).node.addr[:UNIQUE_ID_LENGTH]


def resource_name(kind, unique_id: str, prefix: str = DEFAULT_PREFIX) -> str:
    kind = ResourceKind(kind)
    if not unique_id:
        raise ValueError("unique_id must not be empty")
    return f"{prefix}-{kind.value}-{unique_id}" if prefix else f"{kind.value}-{unique_id}"


# Physical-name property of each kind's CloudFormation resources.
PHYSICAL_NAMES = {
    ResourceKind.PARAMETER: ((ssm.CfnParameter, "name"),),
    ResourceKind.BUCKET: ((s3.CfnBucket, "bucket_name"),),
    ResourceKind.TABLE: (
        (dynamodb.CfnGlobalTable, "table_name"),
        (dynamodb.CfnTable, "table_name"),
    ),
    ResourceKind.TOPIC: ((sns.CfnTopic, "topic_name"),),
    ResourceKind.QUEUE: ((sqs.CfnQueue, "queue_name"),),
}


def _named_resources(stack: Stack, kind: ResourceKind):
    """Yield (construct, physical name) for every resource of a kind already in the stack."""
    for construct in stack.node.find_all():
        for cfn_type, attr in PHYSICAL_NAMES[kind]:
            if isinstance(construct, cfn_type):
                name = getattr(construct, attr)
                if name:
                    yield construct, name


class ResourceGraph(Construct):
    """Declares the managed resources and the shared execution role, and wires
    one least-privilege grant from the role to each resource."""

    def __init__(self, scope: Construct, id: str, *, cfg: dict) -> None:
        super().__init__(scope, id)

        self.resources_cfg = cfg.get("resources", {}) or {}
        self.prefix = cfg.get("resourcePrefix", DEFAULT_PREFIX)
        self.unique_id = unique_id_for(self)

        self.names: dict[ResourceKind, str] = {}
        self._granted: set[tuple[ResourceKind, str]] = set()

        # Create resources
        self.parameter = self._create_parameter()
        self.bucket = self._create_bucket()
        self.table = self._create_table()
        self.topic = self._create_topic()
        self.queue = self._create_queue()
        self.role = self._create_execution_role()

        # Configure permissions
        for kind in GRANTS:
            self.grant(kind, self.role)

        self.references = ResourceReferences(
            parameter_name=self.parameter.parameter_name,
            bucket_name=self.bucket.bucket_name,
            queue_url=self.queue.queue_url,
            topic_arn=self.topic.topic_arn,
            table_name=self.table.table_name,
        )

    def _declare_name(self, kind: ResourceKind) -> str:
        """Pick the name for a kind and reserve it in the stack."""
        name = (self.resources_cfg.get(kind.value, {}) or {}).get("name") or resource_name(
            kind, self.unique_id, self.prefix
        )
        for construct, existing in _named_resources(Stack.of(self), kind):
            if existing == name:
                raise ResourceNameCollisionError(
                    f"{kind.value} name '{name}' is already declared by {construct.node.path}"
                )
        self.names[kind] = name
        return name

    def _create_parameter(self) -> ssm.StringParameter:
        return ssm.StringParameter(
            self, "MyParameter",
            parameter_name=self._declare_name(ResourceKind.PARAMETER),
            string_value="initial-value",
        )

    def _create_bucket(self) -> s3.Bucket:
        return s3.Bucket(
            self, "MyBucket",
            bucket_name=self._declare_name(ResourceKind.BUCKET),
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
        )

    def _create_table(self) -> dynamodb.TableV2:
        return dynamodb.TableV2(
            self, "MyTable",
            table_name=self._declare_name(ResourceKind.TABLE),
            partition_key=dynamodb.Attribute(name="id", type=dynamodb.AttributeType.STRING),
        )

    def _create_topic(self) -> sns.Topic:
        return sns.Topic(
            self, "MyTopic",
            topic_name=self._declare_name(ResourceKind.TOPIC),
        )

    def _create_queue(self) -> sqs.Queue:
        return sqs.Queue(
            self, "MyQueue",
            queue_name=self._declare_name(ResourceKind.QUEUE),
        )

    def _create_execution_role(self) -> iam.Role:
        """Shared role, assumable only by Lambda, with basic log permissions."""
        return iam.Role(
            self, "SharedLambdaRole",
            role_name=f"shared-lambda-role-{self.unique_id}",
            assumed_by=iam.ServicePrincipal(LAMBDA_SERVICE_PRINCIPAL),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(BASIC_EXECUTION_POLICY)
            ],
        )

    def resource(self, kind):
        kind = ResourceKind(kind)
        return {
            ResourceKind.PARAMETER: self.parameter,
            ResourceKind.BUCKET: self.bucket,
            ResourceKind.TABLE: self.table,
            ResourceKind.TOPIC: self.topic,
            ResourceKind.QUEUE: self.queue,
        }[kind]

    def grant(self, kind, grantee: iam.Role) -> bool:
        """Grant the handler's operation on one resource; returns False if already granted."""
        kind = ResourceKind(kind)
        key = (kind, grantee.node.path)
        if key in self._granted:
            return False
        getattr(self.resource(kind), GRANTS[kind])(grantee)
        self._granted.add(key)
        return True
