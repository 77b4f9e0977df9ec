"""Subprocess process runner implementation."""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from ..interfaces.process import ProcessResult, ProcessRunner


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module.

    Calls block until the process exits; there is no timeout.
    """

    def run(
        self,
        command: List[str],
        merge_stderr: bool = True,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command."""
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
            check=False,
            cwd=str(cwd) if cwd else None,
            env=env,
            text=True,
        )
        return ProcessResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
