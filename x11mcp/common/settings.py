"""Application settings singleton - single source of truth for configuration

This module provides a singleton Settings class that consolidates:
1. Fixed tuning constants (polling intervals, grace periods, probe values)
2. Runtime configuration from config.yml

Usage:
    from x11mcp.common.settings import settings

    # Initialize once at startup with loaded config
    config = ConfigLoader.config_load()
    settings.initialize(config)

    # Use anywhere in the application
    time.sleep(settings.DISPLAY_POLL_INTERVAL_SEC)
"""

from typing import Optional

from x11mcp.common.config import Config


class Settings:
    """Singleton settings manager combining config.yml and tuning constants"""

    _instance: Optional["Settings"] = None

    def __new__(cls) -> "Settings":
        """Ensure only one Settings instance exists"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings singleton (only runs once)"""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._config: Optional[Config] = None

    def initialize(self, config: Config) -> None:
        """
        Initialize with loaded configuration

        Args:
            config: Loaded configuration
        """
        self._config = config

    # =========================================================================
    # Display Provisioning Constants
    # =========================================================================

    DISPLAY_POLL_INTERVAL_SEC: float = 0.1
    """Interval between readiness probes while waiting for Xvfb"""

    X11_LOCK_DIR: str = "/tmp"
    """Directory holding the .X<n>-lock files of running X servers"""

    X11_SOCKET_DIR: str = "/tmp/.X11-unix"
    """Directory holding the X<n> unix sockets of running X servers"""

    # =========================================================================
    # Process Supervision Constants
    # =========================================================================

    PROCESS_STOP_GRACE_SEC: float = 3.0
    """Time a child gets to exit after SIGTERM before SIGKILL is sent"""

    # =========================================================================
    # Input Constants
    # =========================================================================

    MAX_POINTER_BUTTON: int = 5
    """Highest pointer button accepted (4/5 are the scroll wheel)"""

    # =========================================================================
    # Runtime Configuration Access
    # =========================================================================

    @property
    def config(self) -> Config:
        """Get loaded configuration object"""
        if self._config is None:
            raise RuntimeError("Settings not initialized. Call settings.initialize(config) first.")
        return self._config


# Global singleton instance
settings = Settings()
"""Global settings singleton instance

Import this anywhere in the application:
    from x11mcp.common.settings import settings
"""
