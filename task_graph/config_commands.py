"""Configuration commands for the task graph CLI."""

from cyclopts import App

from task_graph.config import CONFIG_KEYS, SECRET_KEYS, STORES, get_config
from task_graph.errors import ValidationError

config_app = App(name="config", help="Manage configuration")


def validate_setting(key: str, value: str) -> None:
    """Reject unknown keys and values the store or service could not use."""
    if key not in CONFIG_KEYS:
        raise ValidationError(f"Unknown config key: '{key}'. Run 'task-graph config keys' to see valid keys")
    if key == "store" and value not in STORES:
        raise ValidationError(f"store must be one of: {', '.join(STORES)}")
    if key == "timeout":
        try:
            seconds = float(value)
        except ValueError as e:
            raise ValidationError(f"timeout must be a number of seconds, got '{value}'") from e
        if seconds <= 0:
            raise ValidationError("timeout must be positive")
    if key == "environment" and not value.strip():
        raise ValidationError("environment must not be empty")


def mask(key: str, value: str) -> str:
    """Hide all but the last four characters of secret values."""
    if key not in SECRET_KEYS:
        return value
    value = str(value)
    return "****" + value[-4:] if len(value) > 8 else "****"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration value.

    Args:
        key: One of the keys listed by 'config keys'
        value: New value, checked against the key
        global_: Write to ~/.task-graph instead of the working directory
    """
    validate_setting(key, value)
    config = get_config(use_global=global_)
    config.set(key, value)
    print(f"{key} = {mask(key, value)} saved to {config.config_file}")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a configuration value so its default applies again."""
    config = get_config(use_global=global_)
    config.unset(key)
    print(f"{key} removed from {config.config_file}")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show one configuration value, masking secrets."""
    value = get_config(use_global=global_).get(key)
    if value is None:
        print(f"{key} is not set")
        return
    print(f"{key} = {mask(key, value)}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """Show every configured value, masking secrets."""
    config = get_config(use_global=global_)
    settings = config.list()
    if not settings:
        print(f"Nothing configured in {config.config_file}")
        return

    for key in sorted(settings):
        print(f"{key} = {mask(key, settings[key])}")


@config_app.command
def keys() -> None:
    """Describe every recognised configuration key."""
    width = max(len(key) for key in CONFIG_KEYS)
    for key, description in CONFIG_KEYS.items():
        print(f"{key:<{width}}  {description}")
