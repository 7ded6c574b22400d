"""YAML loading of middleware option maps."""

from pathlib import Path
from typing import Any

import structlog
import yaml

from cdnredirect.errors import ConfigError


logger = structlog.get_logger()

CONFIG_KEY = "config"


def _find_storage_middleware(
    document: dict[str, Any], name: str
) -> dict[str, Any] | None:
    """Find a named storage middleware in a registry-style document.

    Registry configs list middleware as::

        middleware:
          storage:
            - name: cloudfront
              options: {...}

    Args:
        document: Parsed YAML document.
        name: Middleware name.

    Returns:
        The options mapping, or None if the document has no middleware section.

    Raises:
        ConfigError: If the section exists but has no usable entry.
    """
    middleware = document.get("middleware")
    if middleware is None:
        return None
    if not isinstance(middleware, dict):
        raise ConfigError(CONFIG_KEY, "middleware must be a mapping")

    storage = middleware.get("storage") or []
    if not isinstance(storage, list):
        raise ConfigError(CONFIG_KEY, "middleware.storage must be a list")

    for entry in storage:
        if isinstance(entry, dict) and entry.get("name") == name:
            options = entry.get("options") or {}
            if not isinstance(options, dict):
                raise ConfigError(CONFIG_KEY, f"options of {name} must be a mapping")
            return options

    raise ConfigError(CONFIG_KEY, f"no storage middleware named {name!r}")


def load_middleware_options(path: Path, name: str = "cloudfront") -> dict[str, Any]:
    """Load a middleware option map from a YAML file.

    The file is either a flat option mapping or a registry configuration
    with a ``middleware.storage`` list.

    Args:
        path: Path to the YAML file.
        name: Middleware name to look up in registry configurations.

    Returns:
        The raw option map (not yet validated).

    Raises:
        ConfigError: If the file cannot be read or has the wrong shape.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(CONFIG_KEY, f"failed to read {path}: {e}") from e

    try:
        document = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigError(CONFIG_KEY, f"invalid YAML in {path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigError(CONFIG_KEY, f"{path} must contain a mapping")

    options = _find_storage_middleware(document, name)
    if options is None:
        options = document

    logger.debug(
        "middleware_options_loaded",
        component="config",
        path=str(path),
        keys=sorted(str(key) for key in options),
    )
    return {str(key): value for key, value in options.items()}
