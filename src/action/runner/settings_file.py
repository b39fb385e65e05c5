"""Assistant settings bootstrap.

Makes sure ``~/.claude/settings.json`` enables project-level tool services
so the capability document passed on the command line is honored.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SETTINGS_RELATIVE_PATH = Path(".claude") / "settings.json"


def _read_settings(settings_path: Path) -> Dict[str, Any]:
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No existing settings file found, creating new one")
        return {}

    if not raw.strip():
        logger.info("Settings file exists but is empty")
        return {}

    try:
        settings = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Existing settings file is not valid JSON, replacing it")
        return {}

    if not isinstance(settings, dict):
        logger.warning("Existing settings file is not a JSON object, replacing it")
        return {}
    return settings


def setup_claude_settings(home: Optional[Path] = None) -> Path:
    """Set ``enableAllProjectMcpServers`` in the assistant settings file.

    Existing keys are preserved.

    Args:
        home: Home directory; defaults to the current user's.

    Returns:
        Path of the written settings file.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    settings_path = (home or Path.home()) / SETTINGS_RELATIVE_PATH
    logger.info("Setting up Claude settings at: %s", settings_path)

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings = _read_settings(settings_path)
    settings["enableAllProjectMcpServers"] = True

    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    logger.info("Settings saved successfully")
    return settings_path
