"""Configuration file loading and management"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class ServerConfig:
    """MCP server identity"""
    name: str


@dataclass
class DisplayConfig:
    """Display selection and Xvfb provisioning settings"""
    name: Optional[str]  # None means $DISPLAY, or provision one
    force_xvfb: bool
    xvfb_binary: str
    resolution: str  # WIDTHxHEIGHT
    depth: int
    display_min: int
    display_max: int
    ready_timeout_seconds: float


@dataclass
class WindowManagerConfig:
    """Window manager launch and IPC relay settings"""
    command: Optional[str]
    startup_delay_seconds: float
    relay_enabled: bool
    relay_socket: Optional[str]


@dataclass
class ProgramConfig:
    """Companion program started after the window manager"""
    command: Optional[str]
    startup_delay_seconds: float


@dataclass
class SessionConfig:
    """Connection liveness and round-trip deadline settings"""
    liveness_interval_seconds: float  # 0 disables the monitor
    round_trip_timeout_seconds: float


@dataclass
class InputConfig:
    """Input pacing delays"""
    keystroke_delay_ms: int
    click_delay_ms: int
    settle_delay_ms: int


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str
    file: Optional[str]
    format: str


@dataclass
class Config:
    """Complete application configuration"""
    server: ServerConfig
    display: DisplayConfig
    window_manager: WindowManagerConfig
    program: ProgramConfig
    session: SessionConfig
    input: InputConfig
    logging: LoggingConfig


class ConfigLoader:
    """Loads and parses configuration from YAML files"""

    DEFAULT_CONFIG_PATHS = [
        "config.yml",
        "~/.config/x11mcp/config.yml",
        "/etc/x11mcp/config.yml",
    ]

    DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @staticmethod
    def configFile_find() -> Optional[Path]:
        """
        Find configuration file in standard locations

        Returns:
            Path to config file, or None if not found
        """
        for config_path in ConfigLoader.DEFAULT_CONFIG_PATHS:
            path = Path(config_path).expanduser().resolve()
            if path.exists() and path.is_file():
                return path
        return None

    @staticmethod
    def yaml_load(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML configuration file

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If file does not exist
            yaml.YAMLError: If file is not valid YAML
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {file_path} must contain a YAML dictionary")

        return data

    @staticmethod
    def config_parse(data: Dict[str, Any]) -> Config:
        """
        Parse configuration dictionary into Config object

        Every key is optional; missing keys take the built-in defaults.

        Args:
            data: Raw configuration dictionary

        Returns:
            Parsed Config object
        """
        server_data = data.get("server") or {}
        server = ServerConfig(
            name=server_data.get("name", "x11-controller"),
        )

        display_data = data.get("display") or {}
        display = DisplayConfig(
            name=display_data.get("name"),
            force_xvfb=bool(display_data.get("force_xvfb", False)),
            xvfb_binary=display_data.get("xvfb_binary", "Xvfb"),
            resolution=str(display_data.get("resolution", "1024x768")),
            depth=int(display_data.get("depth", 24)),
            display_min=int(display_data.get("display_min", 99)),
            display_max=int(display_data.get("display_max", 200)),
            ready_timeout_seconds=float(display_data.get("ready_timeout_seconds", 5.0)),
        )
        if display.display_min > display.display_max:
            raise ValueError(
                f"display.display_min ({display.display_min}) exceeds "
                f"display.display_max ({display.display_max})"
            )

        wm_data = data.get("window_manager") or {}
        window_manager = WindowManagerConfig(
            command=wm_data.get("command"),
            startup_delay_seconds=float(wm_data.get("startup_delay_seconds", 1.0)),
            relay_enabled=bool(wm_data.get("relay_enabled", True)),
            relay_socket=wm_data.get("relay_socket"),
        )

        program_data = data.get("program") or {}
        program = ProgramConfig(
            command=program_data.get("command"),
            startup_delay_seconds=float(program_data.get("startup_delay_seconds", 2.0)),
        )

        session_data = data.get("session") or {}
        session = SessionConfig(
            liveness_interval_seconds=float(session_data.get("liveness_interval_seconds", 5.0)),
            round_trip_timeout_seconds=float(session_data.get("round_trip_timeout_seconds", 5.0)),
        )

        input_data = data.get("input") or {}
        input_config = InputConfig(
            keystroke_delay_ms=int(input_data.get("keystroke_delay_ms", 10)),
            click_delay_ms=int(input_data.get("click_delay_ms", 10)),
            settle_delay_ms=int(input_data.get("settle_delay_ms", 10)),
        )

        logging_data = data.get("logging") or {}
        logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
            file=logging_data.get("file"),
            format=logging_data.get("format", ConfigLoader.DEFAULT_LOG_FORMAT),
        )

        return Config(
            server=server,
            display=display,
            window_manager=window_manager,
            program=program,
            session=session,
            input=input_config,
            logging=logging,
        )

    @staticmethod
    def config_load(file_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file

        Args:
            file_path: Optional path to config file. If None, searches standard
                locations and falls back to built-in defaults.

        Returns:
            Parsed Config object

        Raises:
            FileNotFoundError: If an explicit config file does not exist
            ValueError: If config file is invalid
        """
        if file_path is None:
            file_path = ConfigLoader.configFile_find()
            if file_path is None:
                return ConfigLoader.config_parse({})

        data = ConfigLoader.yaml_load(file_path)
        return ConfigLoader.config_parse(data)

    @staticmethod
    def configWithOverrides_load(
        file_path: Optional[Path] = None,
        **overrides: Any
    ) -> Config:
        """
        Load configuration and apply command-line overrides

        Args:
            file_path: Optional path to config file
            **overrides: Key-value pairs to override config values

        Returns:
            Config object with overrides applied

        Example:
            config = ConfigLoader.configWithOverrides_load(
                display=":1",
                resolution="1920x1080"
            )
        """
        config = ConfigLoader.config_load(file_path)

        if overrides.get("name") is not None:
            config.server.name = overrides["name"]
        if overrides.get("display") is not None:
            config.display.name = overrides["display"]
        if overrides.get("force_xvfb") is not None:
            config.display.force_xvfb = overrides["force_xvfb"]
        if overrides.get("resolution") is not None:
            config.display.resolution = overrides["resolution"]
        if overrides.get("wm") is not None:
            # Empty string disables the window manager
            config.window_manager.command = overrides["wm"] or None
        if overrides.get("program") is not None:
            config.program.command = overrides["program"] or None
        if overrides.get("log_level") is not None:
            config.logging.level = overrides["log_level"]

        return config
