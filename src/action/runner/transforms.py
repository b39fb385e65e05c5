"""Display transforms for assistant output lines."""

import json
from typing import Callable

LineTransform = Callable[[str], str]


def pretty_json_line(line: str) -> str:
    """Re-indent a JSON line for the workflow log; other lines pass through."""
    try:
        parsed = json.loads(line)
    except ValueError:
        return line
    return json.dumps(parsed, indent=2)


def passthrough_line(line: str) -> str:
    return line
