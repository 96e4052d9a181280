"""Server bootstrap helpers for config and logging."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from x11mcp.common.config import Config, ConfigLoader
from x11mcp.common.settings import settings


def configWithSettings_load(args: argparse.Namespace) -> Config:
    """
    Load configuration and initialize settings singleton.

    Args:
        args: Parsed server CLI args.

    Returns:
        Loaded config.
    """
    config_path: Path | None = Path(args.config) if args.config else None
    try:
        config: Config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            name=args.name,
            display=args.display,
            force_xvfb=args.force_xvfb,
            resolution=args.resolution,
            wm=args.wm,
            program=args.program,
            log_level=args.log_level,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Create a config.yml file or specify path with --config", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    settings.initialize(config)
    return config


def loggingWithConfig_setup(config: Config, logging_setup_func) -> None:
    """
    Setup logging from config (CLI level override already applied).

    Args:
        config: Loaded config.
        logging_setup_func: Logging setup callback.
    """
    logging_setup_func(config.logging.level, config.logging.format, config.logging.file)
