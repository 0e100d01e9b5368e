"""
Configuration for the face auth service.

Settings live in config.yaml at the project root. FACE_AUTH_CONFIG points at
another file. The parsed file is cached after the first read.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


CONFIG_ENV_VAR = "FACE_AUTH_CONFIG"

_config_instance: Optional[Dict[str, Any]] = None


def get_project_root() -> Path:
    """Nearest parent directory of this package that holds config.yaml."""
    current_dir = Path(__file__).resolve().parent

    while current_dir != current_dir.parent:
        if (current_dir / "config.yaml").exists():
            return current_dir
        current_dir = current_dir.parent

    raise FileNotFoundError("config.yaml not found above the core package")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read a config file.

    Args:
        config_path: Explicit path. Falls back to FACE_AUTH_CONFIG, then to
                     the project's config.yaml.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)

    if config_path is None:
        config_path = get_project_root() / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_config(reload: bool = False) -> Dict[str, Any]:
    """Cached configuration; reload=True re-reads the file."""
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = load_config()

    return _config_instance


def get_section(section_name: str) -> Dict[str, Any]:
    """One top-level section. Raises KeyError naming the known sections."""
    config = get_config()

    if section_name not in config:
        raise KeyError(
            f"Configuration section '{section_name}' not found. "
            f"Available sections: {list(config.keys())}"
        )

    return config[section_name]


def get_face_extraction_config() -> Dict[str, Any]:
    return get_section("face_extraction")


def get_capture_config() -> Dict[str, Any]:
    return get_section("capture")


def get_matching_config() -> Dict[str, Any]:
    return get_section("matching")


def get_enrollment_config() -> Dict[str, Any]:
    return get_section("enrollment")


def get_storage_config() -> Dict[str, Any]:
    return get_section("storage")


def get_api_config() -> Dict[str, Any]:
    return get_section("api")


def get_logging_config() -> Dict[str, Any]:
    """Empty if the section is missing."""
    return get_config().get("logging", {})


def get_server_config() -> Dict[str, Any]:
    """Bind host and port taken from api.base_url (http://host:port)."""
    base_url = get_api_config().get("base_url", "http://localhost:8000")

    host = "0.0.0.0"
    port = 8000

    try:
        url_part = base_url.split("//")[-1]
        if ":" in url_part:
            host_part, port_str = url_part.rsplit(":", 1)
            port = int(port_str.rstrip("/"))
            if host_part != "localhost":
                host = host_part
    except (ValueError, IndexError):
        pass

    return {"host": host, "port": port}
