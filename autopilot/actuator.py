"""Redeploy actuator - `docker compose pull` then `docker compose restart`."""
import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path

from autopilot.config import ActuatorConfig
from autopilot.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ComposeActuator:
    """Runs the refresh/restart sequence against a compose file."""

    def __init__(self, config: ActuatorConfig | None = None):
        self.config = config or ActuatorConfig()

    async def run_command(self, *args: str) -> CommandResult:
        """Run a command and capture both output streams.

        On timeout the process is killed and whatever it printed so far is
        kept. If the calling task is cancelled the process is killed and
        reaped before the cancellation propagates.
        """
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        # Shielded so a timeout doesn't drop what the readers already buffered
        output = asyncio.ensure_future(proc.communicate())
        timed_out = False
        try:
            try:
                stdout, stderr = await asyncio.wait_for(asyncio.shield(output), timeout=self.config.command_timeout)
            except asyncio.TimeoutError:
                timed_out = True
                _kill(proc)
                stdout, stderr = await output
        except asyncio.CancelledError:
            _kill(proc)
            output.cancel()
            await proc.wait()
            raise
        returncode = None if timed_out else proc.returncode
        return CommandResult(
            args, returncode, stdout.decode("utf-8", "replace"), stderr.decode("utf-8", "replace"), timed_out=timed_out
        )

    def _compose(self, target: Path, verb: str) -> list[str]:
        return [*self.config.compose_command, "-f", str(target), verb]

    async def refresh(self, target: Path) -> CommandResult:
        return await self.run_command(*self._compose(target, "pull"))

    async def restart(self, target: Path) -> CommandResult:
        return await self.run_command(*self._compose(target, "restart"))

    async def execute(self, target: Path) -> list[CommandResult]:
        """Settle, pull, restart. Not retried. Restart runs even if pull failed,
        unless stop_on_refresh_failure is set."""
        logger.debug("Waiting %.1f seconds before pulling %s", self.config.settle_delay, target)
        await asyncio.sleep(self.config.settle_delay)

        logger.info("Pulling %s", target)
        pulled = await self.refresh(target)
        _log_result("pull", pulled)
        if not pulled.ok and self.config.stop_on_refresh_failure:
            logger.warning("Pull failed for %s, not restarting", target)
            return [pulled]

        logger.info("Restarting %s", target)
        restarted = await self.restart(target)
        _log_result("restart", restarted)
        logger.info("All done for %s", target)
        return [pulled, restarted]


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()


def _log_result(step: str, result: CommandResult) -> None:
    if result.timed_out:
        logger.warning("%s timed out: %s", step, " ".join(result.args))
    elif result.ok:
        logger.info("%s exited with status 0", step)
    else:
        logger.warning("%s exited with status %s", step, result.returncode)
    level = logger.debug if result.ok else logger.warning
    if result.stdout:
        level("%s stdout:\n%s", step, result.stdout.rstrip())
    if result.stderr:
        level("%s stderr:\n%s", step, result.stderr.rstrip())
