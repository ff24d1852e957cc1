"""Loader for the static list of players that are never crawled."""

import json
from pathlib import Path

from src.exceptions import ConfigurationError
from src.logger import get_logger

log = get_logger(__name__)


def load_exclusion_set(path: Path) -> frozenset[int]:
    """Read a JSON array of player ids into an immutable set.

    Ids may be stored as numbers or numeric strings.

    Raises:
        ConfigurationError: If the file is missing or not a list of ids.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError("exclusion_list_path", "file not found", str(path)) from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError("exclusion_list_path", str(exc), str(path)) from exc

    if not isinstance(raw, list):
        raise ConfigurationError(
            "exclusion_list_path", f"expected a JSON array, got {type(raw).__name__}", str(path)
        )

    try:
        exclusions = frozenset(int(value) for value in raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("exclusion_list_path", f"non-numeric id: {exc}", str(path)) from exc

    log.info("Exclusion list loaded", path=str(path), players=len(exclusions))
    return exclusions
