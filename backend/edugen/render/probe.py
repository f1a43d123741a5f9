"""Best-effort checks for whether an external binary can be invoked."""

import asyncio
import logging
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Exit codes that mean "the binary ran". Plenty of CLIs exit 1 for
# --version/--help on some builds; that is an unsupported flag, not a missing tool.
AVAILABLE_EXIT_CODES = (0, 1)


async def command_exists(
    command: str,
    args: Sequence[str] = ("--version",),
    env: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Probe ``command`` by running it with ``args`` and all output discarded.

    Returns False when the process cannot be spawned; never raises.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            env=env,
        )
    except (OSError, ValueError) as e:
        logger.debug(f"Probe for {command!r} failed to spawn: {e}")
        return False

    returncode = await proc.wait()
    available = returncode in AVAILABLE_EXIT_CODES
    if not available:
        logger.debug(f"Probe for {command!r} exited with {returncode}")
    return available
