"""
Post Action Module

Runs the optional shell command configured to execute after a successful
artifact upload. The command's exit status is captured and logged; it never
changes the publish result.

Invoked by: build_publisher
Invokes: /bin/sh
"""

import logging
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class PostUploadAction:
    """
    Shell command executed after an upload completes.

    Attributes:
        script (str): Command line handed to ``/bin/sh -c``
        timeout (Optional[float]): Seconds to wait for the command, None to wait indefinitely
    """

    SHELL = '/bin/sh'

    def __init__(self, script: str, timeout: Optional[float] = None):
        self.script = script
        self.timeout = timeout

    def run(self) -> Optional[int]:
        """
        Execute the script.

        Returns:
            Optional[int]: Exit status, or None if the command could not be started or timed out.
            Never raises.
        """
        logger.info("Running post-upload script: %s", self.script)
        try:
            completed = subprocess.run(
                [self.SHELL, '-c', self.script],
                check=False,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            logger.error(
                "Post-upload script timed out after %s seconds", self.timeout,
                extra={'error_type': type(e).__name__}
            )
            return None
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            # ValueError: arguments the OS rejects, e.g. an embedded null byte
            logger.error("Failed to start post-upload script: %s", e, extra={'error_type': type(e).__name__})
            return None

        if completed.returncode != 0:
            logger.warning("Post-upload script exited with status %d", completed.returncode)
        else:
            logger.info("Post-upload script finished")
        return completed.returncode
