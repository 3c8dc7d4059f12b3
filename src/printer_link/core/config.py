"""Configuration management for printer-link.

Handles configuration loading with the following precedence (highest to lowest):
1. Environment variables
2. CLI arguments
3. Config file
4. Default values
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from printer_link.core.logging import get_logger

logger = get_logger()

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "printer-link" / "config.yaml"

# Environment variable names
ENV_SERIAL_USB_ID = "SERIAL_USB_ID"
ENV_SERIAL_DEV_PATH = "SERIAL_DEV_PATH"
ENV_SERIAL_BAUD_RATE = "SERIAL_BAUD_RATE"
ENV_PRINTER_QUEUE_CAPACITY = "PRINTER_QUEUE_CAPACITY"
ENV_PRINTER_OFFLINE_TIMEOUT = "PRINTER_OFFLINE_TIMEOUT"
ENV_PRINTER_ONLINE_TIMEOUT = "PRINTER_ONLINE_TIMEOUT"
ENV_SERIAL_LOG_FILE = "SERIAL_LOG_FILE"
ENV_CONFIG_FILE = "PRINTER_LINK_CONFIG"


@dataclass
class SerialConfig:
    """Serial port configuration settings."""

    usb_id: str | None = None
    path: str | None = None
    baud_rate: int = 115200
    read_timeout: float = 100.0  # ms
    write_timeout: float = 1000.0  # ms


@dataclass
class PrinterConfig:
    """Printer engine configuration settings."""

    queue_capacity: int = 100
    offline_timeout: float = 10000.0  # ms
    online_timeout: float = 10000.0  # ms
    poll_interval: float = 10.0  # ms
    close_timeout: float = 30000.0  # ms


def _pick(data: dict[str, Any], key: str) -> Any:
    """Look up a hyphenated key, falling back to its underscored spelling."""
    if key in data:
        return data[key]
    return data.get(key.replace("-", "_"))


@dataclass
class Config:
    """Main configuration container."""

    serial: SerialConfig = field(default_factory=SerialConfig)
    printer: PrinterConfig = field(default_factory=PrinterConfig)
    serial_log_file: str | None = None

    @classmethod
    def load(
        cls,
        config_file: Path | str | None = None,
        cli_args: dict[str, Any] | None = None,
        skip_device_validation: bool = False,
    ) -> "Config":
        """Load configuration from all sources with proper precedence.

        Args:
            config_file: Path to configuration file. If None, uses default or env var.
            cli_args: Dictionary of CLI arguments.
            skip_device_validation: If True, skip validation of the serial device settings.

        Returns:
            Loaded and merged configuration.

        Raises:
            ValueError: If neither a USB id nor a device path is set after loading
                all sources (unless skip_device_validation is True).
        """
        config = cls()

        if config_file is None:
            config_file = os.environ.get(ENV_CONFIG_FILE, str(DEFAULT_CONFIG_PATH))

        config_path = Path(config_file).expanduser()

        if config_path.exists():
            config = cls._load_from_file(config_path)

        if cli_args:
            config = cls._apply_cli_args(config, cli_args)

        config = cls._apply_env_vars(config)

        if not skip_device_validation:
            config._validate()

        return config

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to the YAML config file.

        Returns:
            Configuration loaded from file.
        """
        config = cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Failed to load config file {path}: {e}")
            return config

        serial_data = data.get("serial") or {}
        if _pick(serial_data, "usb-id") is not None:
            config.serial.usb_id = str(_pick(serial_data, "usb-id"))
        if _pick(serial_data, "path") is not None:
            config.serial.path = str(_pick(serial_data, "path"))
        if _pick(serial_data, "baud-rate") is not None:
            config.serial.baud_rate = int(_pick(serial_data, "baud-rate"))
        if _pick(serial_data, "read-timeout") is not None:
            config.serial.read_timeout = float(_pick(serial_data, "read-timeout"))
        if _pick(serial_data, "write-timeout") is not None:
            config.serial.write_timeout = float(_pick(serial_data, "write-timeout"))

        printer_data = data.get("printer") or {}
        if _pick(printer_data, "queue-capacity") is not None:
            config.printer.queue_capacity = int(_pick(printer_data, "queue-capacity"))
        if _pick(printer_data, "offline-timeout") is not None:
            config.printer.offline_timeout = float(_pick(printer_data, "offline-timeout"))
        if _pick(printer_data, "online-timeout") is not None:
            config.printer.online_timeout = float(_pick(printer_data, "online-timeout"))
        if _pick(printer_data, "poll-interval") is not None:
            config.printer.poll_interval = float(_pick(printer_data, "poll-interval"))
        if _pick(printer_data, "close-timeout") is not None:
            config.printer.close_timeout = float(_pick(printer_data, "close-timeout"))

        if _pick(data, "serial-log-file") is not None:
            config.serial_log_file = str(_pick(data, "serial-log-file"))

        return config

    @classmethod
    def _apply_cli_args(cls, config: "Config", cli_args: dict[str, Any]) -> "Config":
        """Apply CLI arguments to configuration.

        Args:
            config: Existing configuration to modify.
            cli_args: Dictionary of CLI arguments.

        Returns:
            Modified configuration.
        """
        if cli_args.get("usb_id") is not None:
            config.serial.usb_id = str(cli_args["usb_id"])

        if cli_args.get("dev_path") is not None:
            config.serial.path = str(cli_args["dev_path"])

        if cli_args.get("baud_rate") is not None:
            config.serial.baud_rate = int(cli_args["baud_rate"])

        if cli_args.get("queue_capacity") is not None:
            config.printer.queue_capacity = int(cli_args["queue_capacity"])

        if cli_args.get("serial_log_file") is not None:
            config.serial_log_file = str(cli_args["serial_log_file"])

        return config

    @classmethod
    def _apply_env_vars(cls, config: "Config") -> "Config":
        """Apply environment variables to configuration.

        Args:
            config: Existing configuration to modify.

        Returns:
            Modified configuration.
        """
        if ENV_SERIAL_USB_ID in os.environ:
            config.serial.usb_id = os.environ[ENV_SERIAL_USB_ID]

        if ENV_SERIAL_DEV_PATH in os.environ:
            config.serial.path = os.environ[ENV_SERIAL_DEV_PATH]

        if ENV_SERIAL_BAUD_RATE in os.environ:
            config.serial.baud_rate = int(os.environ[ENV_SERIAL_BAUD_RATE])

        if ENV_PRINTER_QUEUE_CAPACITY in os.environ:
            config.printer.queue_capacity = int(os.environ[ENV_PRINTER_QUEUE_CAPACITY])

        if ENV_PRINTER_OFFLINE_TIMEOUT in os.environ:
            config.printer.offline_timeout = float(os.environ[ENV_PRINTER_OFFLINE_TIMEOUT])

        if ENV_PRINTER_ONLINE_TIMEOUT in os.environ:
            config.printer.online_timeout = float(os.environ[ENV_PRINTER_ONLINE_TIMEOUT])

        if ENV_SERIAL_LOG_FILE in os.environ:
            config.serial_log_file = os.environ[ENV_SERIAL_LOG_FILE]

        return config

    def _validate(self) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        usb_id_set = self.serial.usb_id is not None and self.serial.usb_id.strip()
        dev_path_set = self.serial.path is not None and self.serial.path.strip()

        if not usb_id_set and not dev_path_set:
            raise ValueError(
                "Either USB ID or device path is required but not set. Please provide one via:\n"
                "  USB ID:\n"
                f"    - Environment variable: {ENV_SERIAL_USB_ID}\n"
                "    - CLI argument: --usb-id or -d\n"
                "    - Config file: serial.usb-id\n"
                "  OR device path:\n"
                f"    - Environment variable: {ENV_SERIAL_DEV_PATH}\n"
                "    - CLI argument: --dev\n"
                "    - Config file: serial.path"
            )

        if self.printer.queue_capacity <= 0:
            raise ValueError(
                f"Printer queue capacity must be positive, got {self.printer.queue_capacity}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration.
        """
        result: dict[str, Any] = {
            "serial": {
                "usb_id": self.serial.usb_id,
                "path": self.serial.path,
                "baud_rate": self.serial.baud_rate,
                "read_timeout": self.serial.read_timeout,
                "write_timeout": self.serial.write_timeout,
            },
            "printer": {
                "queue_capacity": self.printer.queue_capacity,
                "offline_timeout": self.printer.offline_timeout,
                "online_timeout": self.printer.online_timeout,
                "poll_interval": self.printer.poll_interval,
                "close_timeout": self.printer.close_timeout,
            },
        }
        if self.serial_log_file is not None:
            result["serial_log_file"] = self.serial_log_file
        return result

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            path: Path to save to. If None, uses default config path.
        """
        if path is None:
            path = DEFAULT_CONFIG_PATH

        save_path = Path(path).expanduser()
        save_path.parent.mkdir(parents=True, exist_ok=True)

        serial_data: dict[str, Any] = {
            "baud-rate": self.serial.baud_rate,
            "read-timeout": self.serial.read_timeout,
            "write-timeout": self.serial.write_timeout,
        }

        if self.serial.usb_id is not None:
            serial_data["usb-id"] = self.serial.usb_id

        if self.serial.path is not None:
            serial_data["path"] = self.serial.path

        data: dict[str, Any] = {
            "serial": serial_data,
            "printer": {
                "queue-capacity": self.printer.queue_capacity,
                "offline-timeout": self.printer.offline_timeout,
                "online-timeout": self.printer.online_timeout,
                "poll-interval": self.printer.poll_interval,
                "close-timeout": self.printer.close_timeout,
            },
        }

        if self.serial_log_file is not None:
            data["serial-log-file"] = self.serial_log_file

        with open(save_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
