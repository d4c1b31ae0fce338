from constructs import Construct
from aws_cdk import Stack, CfnOutput

from hybrid_lambda.cdk_construct.packaged_function import PackagedFunction
from hybrid_lambda.cdk_construct.resource_graph import ResourceGraph, ResourceNameCollisionError
from hybrid_lambda.packaging.builder import OutputFormat, PackagingPolicy

DEFAULT_SERVICE_NAME = "hybrid-module-lambda"

DEFAULT_ARTIFACTS = {
    "archive": {"format": "archive"},
    "directory": {"format": "directory"},
}


class HybridLambdaStack(Stack):
    """Resources, one shared role, and the same handler deployed as two artifacts."""

    def __init__(self, scope: Construct, construct_id: str, *, cfg: dict, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.graph = ResourceGraph(self, "Resources", cfg=cfg)
        environment = {
            **self.graph.references.to_environment(),
            "POWERTOOLS_SERVICE_NAME": cfg.get("projectName", DEFAULT_SERVICE_NAME),
        }
        lambda_cfg = cfg.get("lambda", {}) or {}

        self.functions: dict[str, PackagedFunction] = {}
        self._function_names: dict[str, str] = {}
        artifacts = {
            name: (artifact_cfg or {}, PackagingPolicy.from_config(artifact_cfg or {}))
            for name, artifact_cfg in (cfg.get("artifacts") or DEFAULT_ARTIFACTS).items()
        }
        self._check_one_artifact_per_format(
            {name: policy for name, (_, policy) in artifacts.items()}
        )
        for name, (artifact_cfg, policy) in artifacts.items():
            self.functions[name] = PackagedFunction(
                self, f"{name.capitalize()}Lambda",
                policy=policy,
                role=self.graph.role,
                environment=environment,
                lambda_cfg=lambda_cfg,
                function_name=self._declare_function_name(
                    name,
                    artifact_cfg.get("functionName") or f"{name}-lambda-{self.graph.unique_id}",
                ),
            )

        self._create_outputs()

    def _check_one_artifact_per_format(self, policies: dict[str, PackagingPolicy]) -> None:
        """Exactly one archive and one directory artifact per deployment."""
        by_format = {fmt: [] for fmt in OutputFormat}
        for name, policy in policies.items():
            by_format[policy.output_format].append(name)
        for fmt, names in by_format.items():
            if len(names) != 1:
                raise ValueError(
                    f"Expected exactly one '{fmt.value}' artifact, got {len(names)}: {sorted(names)}"
                )

    def _declare_function_name(self, artifact: str, function_name: str) -> str:
        """Reserve a function name in the stack."""
        if function_name in self._function_names:
            raise ResourceNameCollisionError(
                f"function name '{function_name}' is already declared by "
                f"artifact '{self._function_names[function_name]}'"
            )
        self._function_names[function_name] = artifact
        return function_name

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for important resources."""
        refs = self.graph.references
        CfnOutput(self, "ParameterNameOut", value=refs.parameter_name)
        CfnOutput(self, "BucketNameOut", value=refs.bucket_name)
        CfnOutput(self, "QueueUrlOut", value=refs.queue_url)
        CfnOutput(self, "TopicArnOut", value=refs.topic_arn)
        CfnOutput(self, "TableNameOut", value=refs.table_name)
        CfnOutput(self, "RoleArnOut", value=self.graph.role.role_arn)
        for name, packaged in self.functions.items():
            CfnOutput(
                self, f"{name.capitalize()}LambdaNameOut",
                value=packaged.func.function_name,
            )
