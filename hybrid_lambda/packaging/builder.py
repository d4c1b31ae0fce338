#!/usr/bin/env python3
"""Build a deployable Lambda artifact from one handler source directory.

The same source is packaged in one of two module-linking formats:

* ``directory``: every module sits flat in the artifact root, where the
  Lambda runtime's default import machinery finds it.
* ``archive``: application modules are packed into a single zip that is
  loaded through ``zipimport``. Only the entry module lives on disk, and a
  banner prepended to it puts the zip on ``sys.path`` before the entry's own
  imports run.

Dependencies are always installed on the filesystem: boto3 and botocore load
their data files from disk and cannot be imported from a zip.

This module only uses the standard library because it also runs inside the
runtime's bundling image (see ``bundling.py``).
"""
import argparse
import hashlib
import json
import logging
import py_compile
import shutil
import subprocess
import sys
import tempfile
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "bundle.zip"

ARCHIVE_BANNER = (
    "import os as _os, sys as _sys; "
    "_sys.path.insert(0, _os.path.join(_os.path.dirname(_os.path.abspath(__file__)), "
    f"{ARCHIVE_NAME!r}))"
)

REQUIREMENTS_FILE = "requirements.txt"
METAFILE_NAME = "metafile.json"
SOURCEMAP_NAME = "sourcemap.json"
SOURCES_DIR = "_sources"


class PackagingError(ValueError):
    """Raised for a packaging policy that cannot produce a loadable artifact."""


class OutputFormat(str, Enum):
    ARCHIVE = "archive"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class PackagingPolicy:
    output_format: OutputFormat = OutputFormat.DIRECTORY
    minify: bool = True
    source_map: bool = True
    metafile: bool = True
    bundle_dependencies: bool = True
    banner: str = ""
    entry_module: str = "index"
    archive_name: str = ARCHIVE_NAME

    def __post_init__(self):
        object.__setattr__(self, "output_format", OutputFormat(self.output_format))
        self.validate()

    def validate(self) -> None:
        if self.output_format is OutputFormat.ARCHIVE and not self.banner.strip():
            raise PackagingError(
                "archive format needs a banner that puts the archive on sys.path"
            )
        if self.output_format is OutputFormat.DIRECTORY and self.banner.strip():
            raise PackagingError("directory format does not take a banner")
        if self.banner:
            try:
                compile(self.banner, "<banner>", "exec")
            except SyntaxError as e:
                raise PackagingError(f"banner is not valid Python: {e}") from e

    @classmethod
    def from_config(cls, cfg: dict) -> "PackagingPolicy":
        """Build a policy from an ``artifacts.<name>`` config section."""
        output_format = OutputFormat(cfg.get("format", OutputFormat.DIRECTORY.value))
        default_banner = ARCHIVE_BANNER if output_format is OutputFormat.ARCHIVE else ""
        return cls(
            output_format=output_format,
            minify=bool(cfg.get("minify", True)),
            source_map=bool(cfg.get("sourceMap", True)),
            metafile=bool(cfg.get("metafile", True)),
            bundle_dependencies=bool(cfg.get("bundleDependencies", True)),
            banner=cfg.get("banner", default_banner) or "",
        )

    def to_cli_args(self) -> list[str]:
        args = ["--format", self.output_format.value]
        for flag, enabled in (
            ("minify", self.minify),
            ("source-map", self.source_map),
            ("metafile", self.metafile),
            ("bundle-dependencies", self.bundle_dependencies),
        ):
            args.append(f"--{flag}" if enabled else f"--no-{flag}")
        if self.banner:
            args += ["--banner", self.banner]
        return args


@dataclass
class BuildResult:
    output_dir: Path
    policy: PackagingPolicy
    files: dict = field(default_factory=dict)

    @property
    def total_bytes(self) -> int:
        return sum(self.files.values())


def _module_files(source_dir: Path) -> list[Path]:
    return sorted(
        p for p in source_dir.rglob("*.py")
        if "__pycache__" not in p.parts and not p.name.startswith("test_")
    )


def _install_dependencies(source_dir: Path, target: Path) -> None:
    requirements = source_dir / REQUIREMENTS_FILE
    if not requirements.exists():
        logger.info("No %s in %s, skipping dependencies", REQUIREMENTS_FILE, source_dir)
        return
    subprocess.run(
        [
            sys.executable, "-m", "pip", "install",
            "--requirement", str(requirements),
            "--target", str(target),
            "--no-compile", "--quiet",
        ],
        check=True,
    )


def _emit_module(source: str, rel: Path, dest_root: Path, minify: bool) -> Path:
    """Write one module below dest_root, as source or as optimized bytecode."""
    target = dest_root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    if not minify:
        target.write_text(source)
        return target
    with tempfile.TemporaryDirectory() as tmp:
        staged = Path(tmp) / rel.name
        staged.write_text(source)
        compiled = target.with_suffix(".pyc")
        py_compile.compile(
            str(staged), cfile=str(compiled), dfile=str(rel), optimize=2, doraise=True
        )
    return compiled


def build_artifact(source_dir, output_dir, policy: PackagingPolicy) -> BuildResult:
    source_dir, output_dir = Path(source_dir), Path(output_dir)
    entry_file = source_dir / f"{policy.entry_module}.py"
    if not entry_file.exists():
        raise FileNotFoundError(f"Entry module not found: {entry_file}")
    output_dir.mkdir(parents=True, exist_ok=True)

    if policy.bundle_dependencies:
        _install_dependencies(source_dir, output_dir)

    sourcemap = {}
    with tempfile.TemporaryDirectory() as staging:
        staging = Path(staging)
        for path in _module_files(source_dir):
            rel = path.relative_to(source_dir)
            source = path.read_text()
            if path == entry_file:
                if policy.banner:
                    source = f"{policy.banner}\n{source}"
                dest_root = output_dir
            elif policy.output_format is OutputFormat.ARCHIVE:
                dest_root = staging
            else:
                dest_root = output_dir
            emitted = _emit_module(source, rel, dest_root, policy.minify)

            if policy.source_map:
                shipped = rel
                if policy.minify or dest_root is staging:
                    shipped = Path(SOURCES_DIR) / rel
                    (output_dir / shipped).parent.mkdir(parents=True, exist_ok=True)
                    (output_dir / shipped).write_text(source)
                module = ".".join(rel.with_suffix("").parts)
                sourcemap[module] = {
                    "compiled": emitted.relative_to(dest_root).as_posix(),
                    "source": shipped.as_posix(),
                    "sha256": hashlib.sha256(source.encode()).hexdigest(),
                }

        if policy.output_format is OutputFormat.ARCHIVE:
            with zipfile.ZipFile(output_dir / policy.archive_name, "w", zipfile.ZIP_DEFLATED) as zf:
                for path in sorted(staging.rglob("*")):
                    if path.is_file():
                        zf.write(path, path.relative_to(staging).as_posix())

    if policy.source_map:
        (output_dir / SOURCEMAP_NAME).write_text(json.dumps(sourcemap, indent=2, sort_keys=True))

    result = BuildResult(output_dir=output_dir, policy=policy)
    for path in sorted(output_dir.rglob("*")):
        if path.is_file() and path.name != METAFILE_NAME:
            result.files[path.relative_to(output_dir).as_posix()] = path.stat().st_size

    if policy.metafile:
        (output_dir / METAFILE_NAME).write_text(json.dumps({
            "format": policy.output_format.value,
            "entry": policy.entry_module,
            "minify": policy.minify,
            "files": result.files,
            "totalBytes": result.total_bytes,
        }, indent=2, sort_keys=True))

    logger.info(
        "Built %s artifact in %s (%d files, %d bytes)",
        policy.output_format.value, output_dir, len(result.files), result.total_bytes,
    )
    return result


def _parse_args(argv):
    parser = argparse.ArgumentParser(description="Build a Lambda artifact from a handler source directory.")
    parser.add_argument("source_dir")
    parser.add_argument("output_dir")
    parser.add_argument(
        "--format", dest="output_format",
        choices=[f.value for f in OutputFormat], default=OutputFormat.DIRECTORY.value,
    )
    parser.add_argument("--minify", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--source-map", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--metafile", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument(
        "--bundle-dependencies", action=argparse.BooleanOptionalAction, default=True
    )
    parser.add_argument("--banner", default="")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _parse_args(argv)
    try:
        policy = PackagingPolicy(
            output_format=args.output_format,
            minify=args.minify,
            source_map=args.source_map,
            metafile=args.metafile,
            bundle_dependencies=args.bundle_dependencies,
            banner=args.banner,
        )
        build_artifact(args.source_dir, args.output_dir, policy)
    except (PackagingError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
