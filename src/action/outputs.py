"""GitHub Actions output contract.

Step outputs are appended as ``name=value`` lines to the file named by
GITHUB_OUTPUT; failures are announced with the ``::error::`` workflow
command so they show up as annotations on the run.
"""

import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Optional, TextIO

logger = logging.getLogger(__name__)


class ActionOutputs:
    """Writes step outputs and failure annotations.

    Attributes:
        output_path: GITHUB_OUTPUT file; outputs are only logged when unset.
        stream: Where workflow commands are printed.
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ):
        self.output_path = output_path
        self.stream = stream

    @classmethod
    def from_environment(cls) -> "ActionOutputs":
        return cls(output_path=os.environ.get("GITHUB_OUTPUT") or None)

    def set_output(self, name: str, value: str) -> None:
        """Record a step output.

        Multi-line values use the heredoc form GitHub accepts.
        """
        if not self.output_path:
            logger.info("Output %s=%s (GITHUB_OUTPUT not set)", name, value)
            return

        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            entry = f"{name}={value}\n"

        with Path(self.output_path).open("a", encoding="utf-8") as handle:
            handle.write(entry)
        logger.debug("Set output", extra={"output_name": name})

    def set_failed(self, message: str) -> None:
        """Emit an error annotation for the step."""
        stream = self.stream if self.stream is not None else sys.stdout
        escaped = (
            message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        )
        stream.write(f"::error::{escaped}\n")
        stream.flush()
