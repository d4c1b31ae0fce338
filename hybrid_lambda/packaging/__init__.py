from hybrid_lambda.packaging.builder import (
    ARCHIVE_BANNER,
    OutputFormat,
    PackagingError,
    PackagingPolicy,
    build_artifact,
)

__all__ = [
    "ARCHIVE_BANNER",
    "OutputFormat",
    "PackagingError",
    "PackagingPolicy",
    "build_artifact",
]
