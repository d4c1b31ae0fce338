import os
import re
from pathlib import Path

import yaml

CONFIG_DIR = Path("configs")
DEFAULT_STAGE = "dev"

# ${VAR_NAME} or ${VAR_NAME:default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_config(app, config_dir: Path | str = CONFIG_DIR) -> dict:
    # stage comes from cdk context, then the STAGE env var
    stage = app.node.try_get_context("stage") or os.getenv("STAGE", DEFAULT_STAGE)
    cfg = read_config_file(Path(config_dir) / f"{stage}_config.yaml")
    cfg["stage"] = stage
    if not cfg.get("stackName"):
        raise ValueError(f"'stackName' is required in the {stage} config")
    return cfg


def read_config_file(config_path: Path) -> dict:
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    content = substitute_env_vars(config_path.read_text())
    cfg = yaml.safe_load(content) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config {config_path} must be a mapping, got {type(cfg).__name__}")
    return cfg


def substitute_env_vars(content: str) -> str:
    """
    Substitute environment variables in the format ${VAR_NAME} or ${VAR_NAME:default_value}
    """
    def replace_env_var(match):
        var_name, sep, default_value = match.group(1).partition(":")
        env_value = os.getenv(var_name.strip())
        if env_value is not None:
            return env_value
        if sep:
            return default_value.strip()
        raise ValueError(f"Environment variable '{var_name.strip()}' is required but not set")

    return ENV_VAR_PATTERN.sub(replace_env_var, content)
