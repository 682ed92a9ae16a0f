"""Tests for configuration module."""

import argparse
from pathlib import Path

import pytest

from putt_party.config import (
    ConfigurationError,
    ControllerConfig,
    GameConfig,
    ServerConfig,
    create_config_from_args,
    flatten_toml_config,
    get_unknown_keys,
    load_config_from_toml,
    load_default_config,
    load_session_configs,
    merge_cli_args,
    process_toml_config,
    validate_config,
    validate_controller_config,
    validate_game_config,
)


class TestServerConfig:
    """Tests for ServerConfig dataclass."""

    def test_default_values(self):
        """Test that default values are set correctly."""
        config = ServerConfig()
        assert config.router_port == 5555
        assert config.http_port == 3000
        assert config.enable_http is True
        assert config.max_rooms == 100
        assert config.room_expiry_hours == 2.0
        assert config.public_domain is None

    def test_default_toml_matches_dataclass(self):
        """Test that default.toml and the dataclass defaults agree."""
        assert load_default_config() == ServerConfig()


class TestLoadConfigFromToml:
    """Tests for load_config_from_toml function."""

    def test_load_valid_toml(self, tmp_path: Path):
        """Test loading a valid TOML file."""
        config_file = tmp_path / "config.toml"
        config_file.write_text("[network]\nrouter_port = 7777\nenable_http = false\n")

        data = load_config_from_toml(config_file)
        assert data["network"]["router_port"] == 7777
        assert data["network"]["enable_http"] is False

    def test_load_nonexistent_file(self, tmp_path: Path):
        """Test that FileNotFoundError is raised for missing file."""
        with pytest.raises(FileNotFoundError):
            load_config_from_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml(self, tmp_path: Path):
        """Test that TOMLDecodeError is raised for invalid TOML."""
        import tomllib

        config_file = tmp_path / "invalid.toml"
        config_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_config_from_toml(config_file)


class TestFlattenTomlConfig:
    """Tests for flatten_toml_config and friends."""

    def test_flatten_sections(self):
        """Test that server sections merge into one mapping."""
        toml_data = {
            "network": {"router_port": 6000},
            "rooms": {"max_rooms": 5},
            "timing": {"client_timeout": 10.0},
        }
        flat = flatten_toml_config(toml_data)
        assert flat == {"router_port": 6000, "max_rooms": 5, "client_timeout": 10.0}

    def test_game_sections_left_out(self):
        """Test that [game] and [controller] are not server keys."""
        toml_data = {"game": {"total_holes": 3}, "controller": {"swing_min_samples": 4}}
        assert flatten_toml_config(toml_data) == {}

    def test_empty_optional_strings_become_none(self):
        """Test that "" disables optional string settings."""
        data = process_toml_config({"network": {"public_domain": ""}})
        assert data == {"public_domain": None}

    def test_unknown_keys_ignored_and_reported(self):
        """Test that unknown keys are dropped and reported."""
        toml_data = {
            "network": {"router_port": 5555, "dealer_port": 1},
            "game": {"total_holes": 3, "holes": 9},
        }
        assert process_toml_config(toml_data) == {"router_port": 5555}
        assert get_unknown_keys(toml_data) == ["dealer_port", "game.holes"]


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config(self):
        """Test that valid configuration passes validation."""
        assert validate_config(ServerConfig()) == []

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_router_port(self, port):
        """Test that out of range ports fail validation."""
        errors = validate_config(ServerConfig(router_port=port))
        assert any("router_port" in e for e in errors)

    def test_port_collision(self):
        """Test that the HTTP and ROUTER ports must differ."""
        errors = validate_config(ServerConfig(router_port=4000, http_port=4000))
        assert any("must differ" in e for e in errors)

    def test_port_collision_ignored_without_http(self):
        """Test that the collision check only applies with HTTP enabled."""
        config = ServerConfig(router_port=4000, http_port=4000, enable_http=False)
        assert validate_config(config) == []

    def test_timeout_must_exceed_cleanup(self):
        """Test that clients cannot time out between cleanup passes."""
        errors = validate_config(ServerConfig(client_timeout=1.0, cleanup_interval=2.0))
        assert any("client_timeout" in e for e in errors)

    def test_invalid_log_level(self):
        """Test that unknown log levels fail validation."""
        errors = validate_config(ServerConfig(log_level_console="LOUD"))
        assert any("log_level_console" in e for e in errors)

    def test_game_config(self):
        """Test display tuning validation."""
        assert validate_game_config(GameConfig()) == []
        errors = validate_game_config(
            GameConfig(total_holes=0, course_pars=[2, 0], putt_max_force=0.1)
        )
        assert len(errors) == 3

    def test_recovery_band_must_sit_below_ground(self):
        errors = validate_game_config(GameConfig(recovery_min_y=-1.0, recovery_max_y=-3.0))
        assert any("recovery band" in e for e in errors)
        errors = validate_game_config(GameConfig(recovery_min_y=-3.0, recovery_max_y=1.0))
        assert any("recovery band" in e for e in errors)

    def test_controller_config(self):
        """Test controller tuning validation."""
        assert validate_controller_config(ControllerConfig()) == []
        errors = validate_controller_config(ControllerConfig(swing_max_samples=1))
        assert any("swing_max_samples" in e for e in errors)


class TestMergeCliArgs:
    """Tests for merge_cli_args function."""

    def test_cli_overrides(self):
        """Test that explicit CLI values override config."""
        config = ServerConfig()
        args = argparse.Namespace(router_port=6000, no_http=True, log_json_console=True)

        merged = merge_cli_args(config, args)
        assert merged.router_port == 6000
        assert merged.enable_http is False
        assert merged.log_json_console is True
        # Original config unchanged
        assert config.router_port == 5555

    def test_none_values_dont_override(self):
        """Test that None CLI values don't override config."""
        config = ServerConfig(http_port=4000)
        args = argparse.Namespace(http_port=None, no_http=False)
        assert merge_cli_args(config, args).http_port == 4000

    def test_missing_attributes_handled(self):
        """Test that missing CLI attributes are handled gracefully."""
        config = ServerConfig()
        assert merge_cli_args(config, argparse.Namespace()) is config


class TestCreateConfigFromArgs:
    """Tests for layered config loading."""

    def test_defaults_only(self):
        config, overrides = create_config_from_args(argparse.Namespace(config=None))
        assert config == ServerConfig()
        assert overrides == []

    def test_user_file_then_cli(self, tmp_path: Path, capsys):
        """Test priority: CLI args > user config > default config."""
        config_file = tmp_path / "user.toml"
        config_file.write_text(
            "[network]\nrouter_port = 7000\nhttp_port = 7001\nbogus = 1\n"
        )
        args = argparse.Namespace(config=str(config_file), http_port=8000)

        config, overrides = create_config_from_args(args)

        assert config.router_port == 7000
        assert config.http_port == 8000
        assert [o.key for o in overrides] == ["router_port", "http_port"]
        assert "bogus" in capsys.readouterr().err

    def test_invalid_values_raise(self, tmp_path: Path):
        config_file = tmp_path / "bad.toml"
        config_file.write_text("[rooms]\nmax_rooms = 0\n")
        with pytest.raises(ConfigurationError) as exc_info:
            create_config_from_args(argparse.Namespace(config=str(config_file)))
        assert any("max_rooms" in e for e in exc_info.value.errors)


class TestLoadSessionConfigs:
    """Tests for game and controller tuning."""

    def test_defaults(self):
        game, controller = load_session_configs()
        assert game == GameConfig()
        assert controller == ControllerConfig()

    def test_user_overrides(self, tmp_path: Path):
        config_file = tmp_path / "game.toml"
        config_file.write_text(
            "[game]\ntotal_holes = 3\ncourse_pars = [2, 3, 4]\n"
            "[controller]\ninvert_direction = true\n"
        )
        game, controller = load_session_configs(config_file)
        assert game.total_holes == 3
        assert game.par_for_hole(2) == 4
        assert controller.invert_direction is True

    def test_invalid_override_raises(self, tmp_path: Path):
        config_file = tmp_path / "game.toml"
        config_file.write_text("[game]\nhole_radius = -1.0\n")
        with pytest.raises(ConfigurationError):
            load_session_configs(config_file)
