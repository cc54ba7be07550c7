"""
Configuration Management Module

This module provides a centralized way to load and access configuration settings
from the config.yaml file. It uses the Singleton pattern to ensure only one
configuration instance exists throughout the application.

Usage:
    from core.config import get_config
    config = get_config()
    session_config = config["session"]
"""

import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


# Store the singleton instance (module-level variable)
_config_instance: Optional[Dict[str, Any]] = None


def get_project_root() -> Path:
    """
    Find the project root directory.

    The project root is identified by the presence of config.yaml file.
    This function walks up the directory tree from this file's location
    until it finds config.yaml.

    Returns:
        Path: The absolute path to the project root directory.

    Raises:
        FileNotFoundError: If config.yaml cannot be found in any parent directory.
    """
    current_dir = Path(__file__).resolve().parent

    while current_dir != current_dir.parent:
        config_path = current_dir / "config.yaml"
        if config_path.exists():
            return current_dir
        current_dir = current_dir.parent

    raise FileNotFoundError(
        "Could not find config.yaml in any parent directory. "
        "Make sure you're running from within the project directory."
    )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Optional path to the config file.
                     If not provided, uses the default config.yaml in project root.

    Returns:
        Dict containing all configuration values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the config file contains invalid YAML.
    """
    if config_path is None:
        config_path = get_project_root() / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    return config or {}


def get_config(reload: bool = False) -> Dict[str, Any]:
    """
    Get the configuration singleton.

    Args:
        reload: If True, forces reloading the configuration from disk.
                Useful for testing or if the config file has changed.

    Returns:
        Dict containing all configuration values.

    Example:
        config = get_config()
        duration_ms = config["session"]["duration_ms"]
    """
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = load_config()

    return _config_instance


def get_section(section_name: str) -> Dict[str, Any]:
    """
    Get a specific section from the configuration.

    Args:
        section_name: Name of the configuration section
                      (e.g., "api", "session", "devices")

    Returns:
        Dict containing the section's configuration values.

    Raises:
        KeyError: If the section doesn't exist in the configuration.
    """
    config = get_config()

    if section_name not in config:
        raise KeyError(
            f"Configuration section '{section_name}' not found. "
            f"Available sections: {list(config.keys())}"
        )

    return config[section_name]


# Convenience functions for commonly used configuration sections
def get_api_config() -> Dict[str, Any]:
    """Get API client configuration."""
    return get_section("api")


def get_session_config() -> Dict[str, Any]:
    """Get authentication session configuration."""
    return get_section("session")


def get_devices_config() -> Dict[str, Any]:
    """Get device configuration."""
    return get_section("devices")


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration, falling back to INFO when the section is absent."""
    return get_config().get("logging", {})


def get_server_config() -> Dict[str, Any]:
    """
    Get server configuration for the development backend.

    Returns:
        Dict with host and port for the API server.
    """
    base_url = get_api_config().get("base_url", "http://localhost:8000")

    # Format: http://host:port[/prefix]
    host = "0.0.0.0"
    port = 8000

    try:
        netloc = base_url.split("//")[-1].split("/")[0]
        if ":" in netloc:
            host_part, port_str = netloc.rsplit(":", 1)
            port = int(port_str)
            if host_part != "localhost":
                host = host_part
    except (ValueError, IndexError):
        pass

    return {"host": host, "port": port}


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging from the "logging" section.

    Args:
        level: Optional override for the configured level (e.g. "DEBUG").
    """
    logging_config = get_logging_config()
    logging.basicConfig(
        level=getattr(logging, (level or logging_config.get("level", "INFO")).upper(), logging.INFO),
        format=logging_config.get(
            "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ),
    )
