import sys
from pathlib import Path

import jsii
from aws_cdk import BundlingOptions, DockerVolume, ILocalBundling, aws_lambda as _lambda

from hybrid_lambda.packaging.builder import PackagingPolicy, build_artifact

BUILDER_DIR = Path(__file__).resolve().parent
CONTAINER_BUILDER_DIR = "/packaging"


@jsii.implements(ILocalBundling)
class LocalBundler:
    """Build the artifact in-process when this interpreter matches the Lambda runtime.

    Sourceless bytecode is only loadable by the interpreter version that wrote
    it, so any mismatch hands the build back to the runtime's bundling image.
    """

    def __init__(self, source_dir: Path, policy: PackagingPolicy, runtime: _lambda.Runtime):
        self.source_dir = Path(source_dir)
        self.policy = policy
        self.runtime_name = runtime.name

    def matches_local_interpreter(self) -> bool:
        local = f"python{sys.version_info.major}.{sys.version_info.minor}"
        return local == self.runtime_name

    def try_bundle(self, output_dir, options) -> bool:
        if not self.matches_local_interpreter():
            return False
        build_artifact(self.source_dir, output_dir, self.policy)
        return True


def bundling_command(policy: PackagingPolicy) -> list[str]:
    return [
        "python", f"{CONTAINER_BUILDER_DIR}/builder.py",
        *policy.to_cli_args(),
        "/asset-input", "/asset-output",
    ]


def code_for(policy: PackagingPolicy, source_dir, runtime: _lambda.Runtime) -> _lambda.Code:
    """Package the handler source with the given policy."""
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Lambda source not found: {source_dir}")
    return _lambda.Code.from_asset(
        str(source_dir),
        exclude=["__pycache__", "*.pyc", "tests"],
        bundling=BundlingOptions(
            image=runtime.bundling_image,
            command=bundling_command(policy),
            volumes=[
                DockerVolume(host_path=str(BUILDER_DIR), container_path=CONTAINER_BUILDER_DIR)
            ],
            local=LocalBundler(source_dir, policy, runtime),
        ),
    )
