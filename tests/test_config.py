"""Tests for the configuration module."""

import os
import tempfile
from pathlib import Path

import pytest
import yaml

from printer_link.core.config import (
    ENV_CONFIG_FILE,
    ENV_PRINTER_OFFLINE_TIMEOUT,
    ENV_PRINTER_QUEUE_CAPACITY,
    ENV_SERIAL_BAUD_RATE,
    ENV_SERIAL_DEV_PATH,
    ENV_SERIAL_LOG_FILE,
    ENV_SERIAL_USB_ID,
    Config,
    PrinterConfig,
    SerialConfig,
)

NO_FILE = "/nonexistent/path/config.yaml"


def write_yaml(data: dict) -> str:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.safe_dump(data, f)
        return f.name


class TestSerialConfig:
    """Tests for SerialConfig dataclass."""

    def test_default_values(self):
        """Test that SerialConfig has correct default values."""
        config = SerialConfig()
        assert config.usb_id is None
        assert config.path is None
        assert config.baud_rate == 115200
        assert config.read_timeout == 100.0
        assert config.write_timeout == 1000.0


class TestPrinterConfig:
    """Tests for PrinterConfig dataclass."""

    def test_default_values(self):
        """Test that PrinterConfig has the engine's default timings."""
        config = PrinterConfig()
        assert config.queue_capacity == 100
        assert config.offline_timeout == 10000.0
        assert config.online_timeout == 10000.0
        assert config.poll_interval == 10.0
        assert config.close_timeout == 30000.0


class TestConfig:
    """Tests for Config class."""

    def test_to_dict(self):
        """Test converting Config to dictionary."""
        config = Config()
        config.serial.usb_id = "2c99:0002"
        data = config.to_dict()

        assert data == {
            "serial": {
                "usb_id": "2c99:0002",
                "path": None,
                "baud_rate": 115200,
                "read_timeout": 100.0,
                "write_timeout": 1000.0,
            },
            "printer": {
                "queue_capacity": 100,
                "offline_timeout": 10000.0,
                "online_timeout": 10000.0,
                "poll_interval": 10.0,
                "close_timeout": 30000.0,
            },
        }

    def test_to_dict_includes_serial_log_file(self):
        config = Config(serial_log_file="/tmp/serial.log")
        assert config.to_dict()["serial_log_file"] == "/tmp/serial.log"


class TestConfigValidation:
    """Tests for device validation on load."""

    def test_missing_device_raises(self):
        with pytest.raises(ValueError, match="USB ID or device path"):
            Config.load(config_file=NO_FILE)

    def test_skip_device_validation(self):
        config = Config.load(config_file=NO_FILE, skip_device_validation=True)
        assert config.serial.usb_id is None

    def test_dev_path_is_enough(self):
        config = Config.load(config_file=NO_FILE, cli_args={"dev_path": "/dev/ttyACM0"})
        assert config.serial.path == "/dev/ttyACM0"

    def test_non_positive_capacity_raises(self):
        with pytest.raises(ValueError, match="capacity"):
            Config.load(
                config_file=NO_FILE,
                cli_args={"usb_id": "2c99:0002", "queue_capacity": 0},
            )


class TestConfigLoadFromFile:
    """Tests for loading configuration from files."""

    def test_load_from_yaml_file(self):
        """Test loading configuration from a YAML file."""
        config_path = write_yaml({
            "serial": {
                "usb-id": "abcd:1234",
                "baud-rate": 250000,
                "read-timeout": 50,
            },
            "printer": {
                "queue-capacity": 10,
                "offline-timeout": 5000,
                "close-timeout": 1000,
            },
            "serial-log-file": "/tmp/serial.log",
        })

        try:
            config = Config.load(config_file=config_path)
            assert config.serial.usb_id == "abcd:1234"
            assert config.serial.baud_rate == 250000
            assert config.serial.read_timeout == 50.0
            assert config.printer.queue_capacity == 10
            assert config.printer.offline_timeout == 5000.0
            assert config.printer.online_timeout == 10000.0  # Default
            assert config.printer.close_timeout == 1000.0
            assert config.serial_log_file == "/tmp/serial.log"
        finally:
            os.unlink(config_path)

    def test_load_from_yaml_with_underscore_keys(self):
        """Test loading configuration with underscore-style keys."""
        config_path = write_yaml({
            "serial": {"usb_id": "abcd:1234", "baud_rate": 9600},
            "printer": {"poll_interval": 20},
        })

        try:
            config = Config.load(config_file=config_path)
            assert config.serial.usb_id == "abcd:1234"
            assert config.serial.baud_rate == 9600
            assert config.printer.poll_interval == 20.0
        finally:
            os.unlink(config_path)

    def test_invalid_yaml_uses_defaults(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("serial: [unclosed\n")
            config_path = f.name

        try:
            config = Config.load(config_file=config_path, skip_device_validation=True)
            assert config.serial.baud_rate == 115200
        finally:
            os.unlink(config_path)


class TestConfigLoadFromCliArgs:
    """Tests for loading configuration from CLI arguments."""

    def test_cli_args_override_file(self):
        """Test that CLI arguments override file values."""
        config_path = write_yaml({"serial": {"usb-id": "abcd:1234", "baud-rate": 9600}})

        try:
            config = Config.load(config_file=config_path, cli_args={"baud_rate": 57600})
            assert config.serial.baud_rate == 57600  # From CLI
            assert config.serial.usb_id == "abcd:1234"  # From file
        finally:
            os.unlink(config_path)

    def test_cli_args_with_none_values_are_ignored(self):
        """Test that None values in CLI args don't override defaults."""
        cli_args = {
            "usb_id": "1111:2222",
            "dev_path": None,
            "baud_rate": None,
            "serial_log_file": None,
        }

        config = Config.load(config_file=NO_FILE, cli_args=cli_args)
        assert config.serial.usb_id == "1111:2222"
        assert config.serial.path is None
        assert config.serial.baud_rate == 115200
        assert config.serial_log_file is None


class TestConfigLoadFromEnvVars:
    """Tests for loading configuration from environment variables."""

    def test_env_vars_override_all(self, monkeypatch):
        """Test that environment variables override everything."""
        config_path = write_yaml({
            "serial": {"usb-id": "abcd:1234", "baud-rate": 9600},
            "printer": {"queue-capacity": 10},
        })

        try:
            monkeypatch.setenv(ENV_SERIAL_USB_ID, "ffff:eeee")
            monkeypatch.setenv(ENV_SERIAL_DEV_PATH, "/dev/ttyUSB1")
            monkeypatch.setenv(ENV_SERIAL_BAUD_RATE, "250000")
            monkeypatch.setenv(ENV_PRINTER_QUEUE_CAPACITY, "20")
            monkeypatch.setenv(ENV_PRINTER_OFFLINE_TIMEOUT, "2500")
            monkeypatch.setenv(ENV_SERIAL_LOG_FILE, "/tmp/env.log")

            config = Config.load(config_file=config_path, cli_args={"baud_rate": 57600})

            assert config.serial.usb_id == "ffff:eeee"
            assert config.serial.path == "/dev/ttyUSB1"
            assert config.serial.baud_rate == 250000
            assert config.printer.queue_capacity == 20
            assert config.printer.offline_timeout == 2500.0
            assert config.serial_log_file == "/tmp/env.log"
        finally:
            os.unlink(config_path)


class TestConfigSave:
    """Tests for saving configuration to files."""

    def test_save_uses_hyphenated_keys(self):
        config = Config()
        config.serial.usb_id = "1234:5678"
        config.printer.queue_capacity = 42

        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "test_config.yaml"
            config.save(config_path)

            with open(config_path) as f:
                saved_data = yaml.safe_load(f)

            assert saved_data["serial"]["usb-id"] == "1234:5678"
            assert "path" not in saved_data["serial"]
            assert saved_data["printer"]["queue-capacity"] == 42
            assert "serial-log-file" not in saved_data

    def test_save_creates_parent_directories(self):
        """Test that save creates parent directories if needed."""
        config = Config()

        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "subdir" / "nested" / "config.yaml"
            config.save(config_path)

            assert config_path.exists()

    def test_roundtrip(self):
        """Test saving and loading produces the same configuration."""
        original = Config()
        original.serial.path = "/dev/ttyACM0"
        original.serial.baud_rate = 57600
        original.printer.online_timeout = 2000.0
        original.serial_log_file = "/tmp/serial.log"

        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            original.save(config_path)

            loaded = Config.load(config_file=config_path)

            assert loaded == original


class TestConfigFilePath:
    """Tests for config file path handling."""

    def test_env_var_for_config_path(self, monkeypatch):
        """Test that PRINTER_LINK_CONFIG env var sets the config path."""
        config_path = write_yaml({"serial": {"path": "/dev/ttyACM9"}})

        try:
            monkeypatch.setenv(ENV_CONFIG_FILE, config_path)

            config = Config.load()

            assert config.serial.path == "/dev/ttyACM9"
        finally:
            os.unlink(config_path)

    def test_explicit_path_overrides_env_var(self, monkeypatch):
        """Test that explicit config_file argument overrides env var."""
        env_config_path = write_yaml({"serial": {"path": "/dev/env"}})
        explicit_config_path = write_yaml({"serial": {"path": "/dev/explicit"}})

        try:
            monkeypatch.setenv(ENV_CONFIG_FILE, env_config_path)

            config = Config.load(config_file=explicit_config_path)

            assert config.serial.path == "/dev/explicit"
        finally:
            os.unlink(env_config_path)
            os.unlink(explicit_config_path)
