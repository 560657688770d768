import os

import yaml


class ConfigError(Exception):
    """Raised when the configuration file is missing or malformed."""


def _expand_env(value):
    """Recursively expand ${VAR} / $VAR references in string values."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        return os.path.expandvars(value)
    return value


def load_config(config_file: str):
    """
    Load configuration settings from a YAML file.

    String values may reference environment variables (`${BSKY_APP_PASSWORD}`), which
    keeps credentials out of the file itself. Unset variables are left as written.

    Args:
        config_file (str): The file path to the YAML configuration file.

    Returns:
        dict: The parsed configuration with environment references expanded.

    Raises:
        ConfigError: If the file is not found, is not valid YAML, or is not a mapping.

    Example Usage:
        config = load_config("config/config.yaml")
        print(config["store"]["path"])
    """
    try:
        with open(config_file, encoding="utf-8") as file:
            config = yaml.safe_load(file)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file {config_file} not found.")
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file: {e}")

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file {config_file} must contain a mapping.")

    return _expand_env(config)


def resolve_mode(config: dict, env_mode: str | None = None) -> str:
    """
    Resolve the social account mode: env (MIRRORBOT_MODE) > script.mode > "prod".
    Anything other than "prod" / "debug" falls through to the next source.
    """
    if env_mode and env_mode.strip().lower() in {"prod", "debug"}:
        return env_mode.strip().lower()

    yaml_mode = str((config.get("script") or {}).get("mode", "")).strip().lower()
    if yaml_mode in {"prod", "debug"}:
        return yaml_mode

    return "prod"
