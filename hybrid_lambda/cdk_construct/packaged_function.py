from pathlib import Path

from constructs import Construct
from aws_cdk import (
    Duration,
    aws_iam as iam,
    aws_lambda as _lambda,
)

from hybrid_lambda.packaging.builder import PackagingPolicy
from hybrid_lambda.packaging.bundling import code_for

PROJECT_ROOT = Path(__file__).resolve().parents[2]

RUNTIME_MAP = {
    "python3.13": _lambda.Runtime.PYTHON_3_13,
    "python3.12": _lambda.Runtime.PYTHON_3_12,
    "python3.11": _lambda.Runtime.PYTHON_3_11,
    "python3.10": _lambda.Runtime.PYTHON_3_10,
}


def resolve_runtime(name: str | None) -> _lambda.Runtime:
    """Resolve Lambda runtime from configuration."""
    cfg_runtime = (name or "python3.12").lower()
    runtime_enum = RUNTIME_MAP.get(cfg_runtime)
    if runtime_enum is None:
        raise ValueError(
            f"Unsupported runtime '{cfg_runtime}'. "
            f"Choose one of: {list(RUNTIME_MAP.keys())}"
        )
    return runtime_enum


class PackagedFunction(Construct):
    """One Lambda function built from the shared handler source with a given packaging policy."""

    def __init__(
        self,
        scope: Construct,
        id: str,
        *,
        policy: PackagingPolicy,
        role: iam.IRole,
        environment: dict[str, str],
        lambda_cfg: dict,
        function_name: str | None = None,
    ) -> None:
        super().__init__(scope, id)

        self.policy = policy
        self.runtime = resolve_runtime(lambda_cfg.get("runtime"))
        self.source_dir = self._resolve_source_dir(lambda_cfg.get("codePath", "lambda_src/shared"))

        self.func = _lambda.Function(
            self, "Function",
            function_name=function_name,
            runtime=self.runtime,
            handler=f"{policy.entry_module}.handler",
            code=code_for(policy, self.source_dir, self.runtime),
            role=role,
            logging_format=_lambda.LoggingFormat.JSON,
            timeout=Duration.seconds(lambda_cfg.get("timeout", 30)),
            memory_size=lambda_cfg.get("memory", 1024),
            environment=environment,
        )

    def _resolve_source_dir(self, code_path: str) -> Path:
        path = Path(code_path)
        return path if path.is_absolute() else PROJECT_ROOT / path
