"""
Subprocess helpers shared by the git and codex CLI wrappers.
"""

import asyncio


async def kill_process(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` if it is still running and reap it."""
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        # Exited between the returncode check and the signal
        pass
    await process.wait()
