from __future__ import annotations

import logging
import tomllib
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILE = "pyproject.toml"

# key -> accepted types
KNOWN_KEYS: dict[str, tuple[type, ...]] = {
    "ignore": (list,),
    "force-publish": (bool, str, list),
    "cd-version": (str,),
    "no-dev": (bool,),
    "no-optional": (bool,),
}


def load_config(workspace_root: Path) -> dict:
    """Read the ``[tool.releasetrace]`` table from the workspace pyproject.toml.

    A missing file or table gives an empty dict. Unknown keys are dropped
    with a warning.

    Raises:
        ValueError: If the file is not valid TOML or a value has the wrong type.
        RuntimeError: If the file exists but cannot be read.
    """
    path = workspace_root / CONFIG_FILE
    try:
        data = tomllib.loads(path.read_text())
    except FileNotFoundError:
        logger.debug("No %s in %s, using defaults", CONFIG_FILE, workspace_root)
        return {}
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path} is not valid TOML: {exc}") from exc
    except (PermissionError, OSError) as exc:
        raise RuntimeError(f"Cannot read {path}: {exc}") from exc

    table = data.get("tool", {}).get("releasetrace", {})
    if not isinstance(table, dict):
        raise ValueError(f"{path} [tool.releasetrace] must be a table")

    config = {}
    for key, value in table.items():
        if key not in KNOWN_KEYS:
            logger.warning("Unknown key %r in %s [tool.releasetrace], ignoring", key, path)
            continue
        expected = KNOWN_KEYS[key]
        if not isinstance(value, expected):
            names = " or ".join(t.__name__ for t in expected)
            raise ValueError(
                f"{path} [tool.releasetrace] {key} must be {names}, "
                f"got {type(value).__name__}"
            )
        if isinstance(value, list) and not all(isinstance(v, str) for v in value):
            raise ValueError(f"{path} [tool.releasetrace] {key} must be a list of strings")
        config[key] = value

    logger.debug("Loaded config from %s: %s", path, config)
    return config
