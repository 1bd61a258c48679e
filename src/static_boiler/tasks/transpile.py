"""External script transpiler invocation.

The transpiler is any command that reads a program on stdin and writes the
down-levelled program to stdout (esbuild by default). A configured
transpiler that is not installed fails the step; projects that ship modern
scripts as-is set `scripts.transpiler: []`.
"""

import logging
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from static_boiler.core.exceptions import AssetInputError, TranspilerError

logger = logging.getLogger(__name__)

# Keep error output readable in the console
MAX_ERROR_CHARS = 2000


def transpile(source: str, path: Path, command: Sequence[str], timeout: int) -> str:
    """Transpile one script.

    Args:
        source: Script source.
        path: Script path, for error messages.
        command: Transpiler argv; empty disables transpilation.
        timeout: Seconds before the transpiler is killed.

    Returns:
        Transpiled source, or source itself when transpilation is disabled.

    Raises:
        AssetInputError: If the transpiler rejects the script.
        TranspilerError: If the transpiler is missing or does not finish.

    """
    if not command:
        return source

    executable = shutil.which(command[0])
    if executable is None:
        raise TranspilerError(
            f"Transpiler {command[0]!r} not found on PATH. Install it or set "
            "scripts.transpiler: [] in static-boiler.yaml to ship scripts untranspiled"
        )

    try:
        result = subprocess.run(
            [executable, *command[1:]],
            input=source,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise TranspilerError(f"{command[0]} timed out after {timeout}s on {path}") from e
    except OSError as e:
        raise TranspilerError(f"Cannot run {command[0]}: {e}") from e

    if result.returncode != 0:
        message = (result.stderr or result.stdout or "").strip()[:MAX_ERROR_CHARS]
        raise AssetInputError(path, message or f"{command[0]} exited with {result.returncode}")

    logger.debug("Transpiled %s with %s", path.name, command[0])
    return result.stdout
