"""Configuration management for the Putt Party relay and game sessions.

This module provides TOML-based configuration support with CLI override capability.

Configuration priority: CLI args > user config > default config
"""

from __future__ import annotations

import argparse
import importlib.resources
import sys
import tomllib
from dataclasses import dataclass, field, fields
from dataclasses import replace as dataclass_replace
from pathlib import Path
from typing import Any, NamedTuple


class ConfigurationError(Exception):
    """Raised when configuration validation fails.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Configuration validation failed: {'; '.join(errors)}")


class DefaultConfigError(Exception):
    """Raised when default configuration cannot be loaded.

    This is a fatal error that prevents server startup.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to load default configuration: {message}")


class ConfigOverride(NamedTuple):
    """Represents a configuration value override.

    Attributes:
        key: The configuration field name.
        default_value: The default value from default.toml.
        new_value: The new value from user config or CLI.
    """

    key: str
    default_value: Any
    new_value: Any


@dataclass
class ServerConfig:
    """Relay server configuration.

    Defaults mirror default.toml.
    Configuration priority: CLI args > user config > default config
    """

    # Network settings
    router_port: int = 5555
    http_port: int = 3000
    http_host: str = "0.0.0.0"
    enable_http: bool = True
    public_domain: str | None = None
    public_protocol: str = "http"
    game_path: str = "/game.html"

    # Room settings
    max_rooms: int = 100
    room_expiry_hours: float = 2.0
    game_type: str = "minigolf"

    # Timing settings
    client_timeout: float = 30.0
    cleanup_interval: float = 1.0
    status_log_interval: float = 10.0
    main_loop_sleep: float = 0.02
    poll_timeout: int = 100

    # Logging settings
    log_dir: str | None = None
    log_level_console: str = "INFO"
    log_json_console: bool = False
    log_rotation: str | None = None
    log_retention: str | None = None


@dataclass
class GameConfig:
    """Display-side tuning: course layout, hole detection and putt force."""

    total_holes: int = 5
    course_pars: list[int] = field(default_factory=list)
    course_width: float = 8.0
    course_length: float = 16.0
    hole_radius: float = 0.15
    tee_drop_height: float = 0.5
    tick_rate_hz: float = 60.0

    # Out of bounds
    oob_min_y: float = -20.0
    oob_limit: float = 50.0
    # Balls that fell through the green inside this band are lifted back up
    recovery_min_y: float = -10.0
    recovery_max_y: float = -2.0

    # Motion settle
    settle_speed: float = 0.1
    settle_grace_ms: float = 2000.0
    advance_delay_ms: float = 3000.0

    # Near-hole attraction
    attraction_radius_factor: float = 4.0
    attraction_max_speed: float = 2.0
    attraction_max_height: float = 0.2
    attraction_strength: float = 0.01

    # Hole detection (per-tick poll)
    capture_radius_factor: float = 1.5
    capture_max_speed: float = 2.5
    capture_max_height: float = 0.25

    # Hole detection (contact callback)
    contact_radius_factor: float = 1.5
    contact_max_speed: float = 2.5

    # Putt force mapping
    putt_min_force: float = 0.5
    putt_max_force: float = 3.0
    putt_upward_component: float = 0.05
    raw_magnitude_scale: float = 30.0

    def par_for_hole(self, index: int) -> int:
        """Par for the zero-based hole index."""
        if index < len(self.course_pars):
            return self.course_pars[index]
        return 2 + index // 2


@dataclass
class ControllerConfig:
    """Controller-side tuning: heading stream cadence and swing analysis."""

    orientation_rate_hz: float = 20.0
    heartbeat_interval: float = 5.0
    invert_direction: bool = False
    swing_min_samples: int = 5
    swing_solid_hit_speed: float = 300.0
    swing_power_cap: float = 1.5
    swing_max_samples: int = 600
    sample_min_interval_ms: float = 50.0


# TOML sections that flatten into ServerConfig
_SERVER_SECTIONS: dict[str, set[str]] = {
    "network": {
        "router_port",
        "http_port",
        "http_host",
        "enable_http",
        "public_domain",
        "public_protocol",
        "game_path",
    },
    "rooms": {"max_rooms", "room_expiry_hours", "game_type"},
    "timing": {
        "client_timeout",
        "cleanup_interval",
        "status_log_interval",
        "main_loop_sleep",
        "poll_timeout",
    },
    "logging": {
        "log_dir",
        "log_level_console",
        "log_json_console",
        "log_rotation",
        "log_retention",
    },
}

# Valid config keys (for unknown key detection)
_VALID_KEYS: set[str] = set().union(*_SERVER_SECTIONS.values())

_GAME_KEYS: set[str] = {f.name for f in fields(GameConfig)}
_CONTROLLER_KEYS: set[str] = {f.name for f in fields(ControllerConfig)}

# Optional string fields where "" means "not set"
_OPTIONAL_STRING_KEYS = ("public_domain", "log_dir", "log_rotation", "log_retention")


def load_default_toml_data() -> dict[str, Any]:
    """Load the default.toml data from the bundled package resource.

    Returns:
        Parsed TOML data as a dictionary.

    Raises:
        DefaultConfigError: If default.toml cannot be found or parsed.
    """
    try:
        files = importlib.resources.files("putt_party")
        content = files.joinpath("default.toml").read_bytes()
        return tomllib.loads(content.decode("utf-8"))
    except FileNotFoundError as e:
        raise DefaultConfigError(f"default.toml not found in package: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise DefaultConfigError(f"Invalid TOML syntax in default.toml: {e}") from e
    except Exception as e:
        raise DefaultConfigError(f"Failed to read default.toml: {e}") from e


def load_config_from_toml(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        tomllib.TOMLDecodeError: If the TOML syntax is invalid.
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def flatten_toml_config(toml_data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the server sections of a TOML document into one mapping.

    Keys may also appear at the top level. The [game] and [controller]
    sections belong to the game sessions and are left out.
    """
    flat: dict[str, Any] = {}
    for key, value in toml_data.items():
        if key in _SERVER_SECTIONS and isinstance(value, dict):
            flat.update(value)
        elif key in ("game", "controller") and isinstance(value, dict):
            continue
        else:
            flat[key] = value
    return flat


def process_toml_config(toml_data: dict[str, Any]) -> dict[str, Any]:
    """Process TOML config data into ServerConfig-compatible dictionary."""
    result: dict[str, Any] = {}

    for key, value in flatten_toml_config(toml_data).items():
        if key in _VALID_KEYS:
            if key in _OPTIONAL_STRING_KEYS and value == "":
                value = None
            result[key] = value

    return result


def get_unknown_keys(toml_data: dict[str, Any]) -> list[str]:
    """Detect unknown keys in TOML configuration.

    Returns:
        List of unknown key names, section-qualified for the game sections.
    """
    unknown: list[str] = []

    for key in flatten_toml_config(toml_data):
        if key not in _VALID_KEYS:
            unknown.append(key)

    for section, valid in (("game", _GAME_KEYS), ("controller", _CONTROLLER_KEYS)):
        table = toml_data.get(section)
        if isinstance(table, dict):
            unknown.extend(f"{section}.{key}" for key in table if key not in valid)

    return unknown


def validate_config(config: ServerConfig) -> list[str]:
    """Validate relay server configuration values.

    Returns:
        List of error messages. Empty list if configuration is valid.
    """
    errors: list[str] = []

    for field_name in ("router_port", "http_port"):
        port = getattr(config, field_name)
        if not 1 <= port <= 65535:
            errors.append(f"{field_name} must be between 1 and 65535, got {port}")

    if config.enable_http and config.router_port == config.http_port:
        errors.append(
            f"router_port and http_port must differ, both are {config.router_port}"
        )

    if config.public_protocol not in ("http", "https"):
        errors.append(
            f"public_protocol must be 'http' or 'https', got {config.public_protocol}"
        )

    if not config.game_path.startswith("/"):
        errors.append(f"game_path must start with '/', got {config.game_path}")

    if config.max_rooms <= 0:
        errors.append(f"max_rooms must be positive, got {config.max_rooms}")

    timing_fields = [
        "room_expiry_hours",
        "client_timeout",
        "cleanup_interval",
        "status_log_interval",
        "main_loop_sleep",
    ]
    for field_name in timing_fields:
        value = getattr(config, field_name)
        if value <= 0:
            errors.append(f"{field_name} must be positive, got {value}")

    if config.poll_timeout <= 0:
        errors.append(f"poll_timeout must be positive, got {config.poll_timeout}")

    # Heartbeats must arrive more often than the timeout
    if config.client_timeout <= config.cleanup_interval:
        errors.append(
            f"client_timeout ({config.client_timeout}s) must be longer than "
            f"cleanup_interval ({config.cleanup_interval}s)"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level_console.upper() not in valid_log_levels:
        errors.append(
            f"log_level_console must be one of {valid_log_levels}, "
            f"got {config.log_level_console}"
        )

    return errors


def validate_game_config(config: GameConfig) -> list[str]:
    """Validate display-side tuning values."""
    errors: list[str] = []

    if config.total_holes <= 0:
        errors.append(f"total_holes must be positive, got {config.total_holes}")

    for index, par in enumerate(config.course_pars):
        if not isinstance(par, int) or par <= 0:
            errors.append(f"course_pars[{index}] must be a positive integer, got {par}")

    positive_fields = [
        "course_width",
        "course_length",
        "hole_radius",
        "tick_rate_hz",
        "oob_limit",
        "settle_speed",
        "attraction_radius_factor",
        "capture_radius_factor",
        "contact_radius_factor",
        "raw_magnitude_scale",
        "putt_min_force",
    ]
    for field_name in positive_fields:
        value = getattr(config, field_name)
        if value <= 0:
            errors.append(f"{field_name} must be positive, got {value}")

    non_negative_fields = [
        "settle_grace_ms",
        "advance_delay_ms",
        "attraction_max_speed",
        "attraction_strength",
        "capture_max_speed",
        "contact_max_speed",
        "putt_upward_component",
    ]
    for field_name in non_negative_fields:
        value = getattr(config, field_name)
        if value < 0:
            errors.append(f"{field_name} must not be negative, got {value}")

    if config.putt_max_force < config.putt_min_force:
        errors.append(
            f"putt_max_force ({config.putt_max_force}) must not be below "
            f"putt_min_force ({config.putt_min_force})"
        )

    if config.oob_min_y >= 0:
        errors.append(f"oob_min_y must be below ground level, got {config.oob_min_y}")

    if not config.recovery_min_y < config.recovery_max_y < 0:
        errors.append(
            f"recovery band must satisfy recovery_min_y < recovery_max_y < 0, "
            f"got ({config.recovery_min_y}, {config.recovery_max_y})"
        )

    return errors


def validate_controller_config(config: ControllerConfig) -> list[str]:
    """Validate controller-side tuning values."""
    errors: list[str] = []

    positive_fields = [
        "orientation_rate_hz",
        "heartbeat_interval",
        "swing_min_samples",
        "swing_solid_hit_speed",
        "swing_power_cap",
    ]
    for field_name in positive_fields:
        value = getattr(config, field_name)
        if value <= 0:
            errors.append(f"{field_name} must be positive, got {value}")

    if config.swing_max_samples < max(config.swing_min_samples, 2):
        errors.append(
            f"swing_max_samples ({config.swing_max_samples}) must be at least "
            f"swing_min_samples ({config.swing_min_samples}) and 2"
        )

    if config.sample_min_interval_ms < 0:
        errors.append(
            f"sample_min_interval_ms must not be negative, "
            f"got {config.sample_min_interval_ms}"
        )

    return errors


def _load_section(cls: type, toml_data: dict[str, Any], section: str) -> Any:
    """Build a section dataclass from the [section] table, ignoring unknown keys."""
    valid = {f.name for f in fields(cls)}
    table = toml_data.get(section) or {}
    try:
        return cls(**{k: v for k, v in table.items() if k in valid})
    except TypeError as e:
        raise DefaultConfigError(f"Invalid [{section}] section: {e}") from e


def load_default_config() -> ServerConfig:
    """Load the default relay configuration from the bundled default.toml.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded or is incomplete.
    """
    try:
        toml_data = load_default_toml_data()
        config_data = process_toml_config(toml_data)

        config_fields = {f.name for f in fields(ServerConfig)}
        missing = config_fields - set(config_data.keys())
        if missing:
            raise DefaultConfigError(
                f"Missing required fields in default.toml: {', '.join(sorted(missing))}"
            )

        return ServerConfig(**config_data)
    except DefaultConfigError:
        raise
    except TypeError as e:
        raise DefaultConfigError(f"Invalid field types in default.toml: {e}") from e


def load_default_game_config() -> GameConfig:
    """Load the [game] section of the bundled default.toml."""
    return _load_section(GameConfig, load_default_toml_data(), "game")


def load_default_controller_config() -> ControllerConfig:
    """Load the [controller] section of the bundled default.toml."""
    return _load_section(ControllerConfig, load_default_toml_data(), "controller")


def load_session_configs(
    path: Path | None = None,
) -> tuple[GameConfig, ControllerConfig]:
    """Load game and controller tuning, layering an optional user file on defaults.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded.
        ConfigurationError: If the merged values are invalid.
    """
    game = load_default_game_config()
    controller = load_default_controller_config()

    if path is not None:
        toml_data = load_config_from_toml(Path(path))
        game_updates = {
            k: v for k, v in (toml_data.get("game") or {}).items() if k in _GAME_KEYS
        }
        controller_updates = {
            k: v
            for k, v in (toml_data.get("controller") or {}).items()
            if k in _CONTROLLER_KEYS
        }
        if game_updates:
            game = dataclass_replace(game, **game_updates)
        if controller_updates:
            controller = dataclass_replace(controller, **controller_updates)

    errors = validate_game_config(game) + validate_controller_config(controller)
    if errors:
        raise ConfigurationError(errors)

    return game, controller


def merge_cli_args(config: ServerConfig, args: argparse.Namespace) -> ServerConfig:
    """Merge CLI arguments into config (CLI takes precedence).

    Only overrides config values when CLI args are explicitly provided.
    """
    updates: dict[str, Any] = {}

    # Network settings from CLI
    for name in ("router_port", "http_port", "http_host", "public_domain", "max_rooms"):
        value = getattr(args, name, None)
        if value is not None:
            updates[name] = value

    if getattr(args, "no_http", False):
        updates["enable_http"] = False

    # Logging settings from CLI
    if getattr(args, "log_dir", None) is not None:
        updates["log_dir"] = str(args.log_dir)
    if getattr(args, "log_level_console", None) is not None:
        updates["log_level_console"] = args.log_level_console
    if getattr(args, "log_json_console", False):
        updates["log_json_console"] = True
    if getattr(args, "log_rotation", None) is not None:
        updates["log_rotation"] = args.log_rotation
    if getattr(args, "log_retention", None) is not None:
        updates["log_retention"] = args.log_retention

    if not updates:
        return config

    return dataclass_replace(config, **updates)


def create_config_from_args(
    args: argparse.Namespace,
) -> tuple[ServerConfig, list[ConfigOverride]]:
    """Create ServerConfig from CLI arguments with layered config loading.

    Configuration priority: CLI args > user config > default config

    Returns:
        Tuple of (ServerConfig instance, list of ConfigOverride).
        The overrides list contains all values from user config that differ from defaults.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded (fatal).
        FileNotFoundError: If specified user config file does not exist.
        tomllib.TOMLDecodeError: If config file has invalid TOML syntax.
        ConfigurationError: If configuration validation fails.
    """
    config = load_default_config()
    overrides: list[ConfigOverride] = []

    if getattr(args, "config", None) is not None:
        user_config_path = Path(args.config)
        toml_data = load_config_from_toml(user_config_path)

        # Using stderr since logging is not configured yet
        unknown = get_unknown_keys(toml_data)
        if unknown:
            print(f"WARNING: Unknown keys in {user_config_path}:", file=sys.stderr)
            for key in unknown:
                print(f"  - {key}", file=sys.stderr)

        config_data = process_toml_config(toml_data)

        if config_data:
            for key, new_value in config_data.items():
                default_value = getattr(config, key)
                if default_value != new_value:
                    overrides.append(ConfigOverride(key, default_value, new_value))

            config = dataclass_replace(config, **config_data)

    config = merge_cli_args(config, args)

    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)

    return config, overrides
