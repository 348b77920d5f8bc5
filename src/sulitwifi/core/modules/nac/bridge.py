"""Bridges to the network access controller (nodogsplash's ndsctl)."""

import asyncio
from abc import ABC, abstractmethod

import structlog

from sulitwifi.core.modules.nac.models import NacAction, NacResult

logger = structlog.get_logger(__name__)


class NacBridge(ABC):
    """Issues one authorize/revoke command. Failures are results, never exceptions."""

    async def authorize(self, mac: str, minutes: int) -> NacResult:
        return await self.run(NacAction.AUTHORIZE, mac, minutes)

    async def revoke(self, mac: str) -> NacResult:
        return await self.run(NacAction.REVOKE, mac, None)

    @abstractmethod
    async def run(self, action: NacAction, mac: str, minutes: int | None) -> NacResult: ...


class NdsctlBridge(NacBridge):
    """Runs `[sudo] ndsctl auth <mac> <minutes>` and `[sudo] ndsctl deauth <mac>`.

    Nonzero exit, missing success text, spawn errors and timeouts are all failures.
    A process that exceeds the timeout is killed.
    """

    def __init__(self, command: str = "ndsctl", use_sudo: bool = True, timeout: float = 5.0) -> None:
        self.command = command
        self.use_sudo = use_sudo
        self.timeout = timeout

    def build_args(self, action: NacAction, mac: str, minutes: int | None) -> list[str]:
        args = ["sudo", self.command] if self.use_sudo else [self.command]
        args += [action.value, mac]
        if minutes is not None:
            args.append(str(minutes))
        return args

    async def run(self, action: NacAction, mac: str, minutes: int | None) -> NacResult:
        args = self.build_args(action, mac, minutes)
        logger.debug("nac_command_exec", args=args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            return NacResult(action=action, mac=mac, minutes=minutes, ok=False, error=f"spawn failed: {e}")

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return NacResult(action=action, mac=mac, minutes=minutes, ok=False, error=f"timed out after {self.timeout}s")

        output = stdout.decode(errors="replace").strip()
        if proc.returncode != 0:
            error = f"exit code {proc.returncode}"
        elif action.expected_output not in output.lower():
            error = f"expected '{action.expected_output}' in output"
        else:
            error = None
        return NacResult(
            action=action,
            mac=mac,
            minutes=minutes,
            ok=error is None,
            exit_code=proc.returncode,
            output=output,
            error=error,
        )


class DryRunBridge(NacBridge):
    """Logs commands instead of running them, for machines without nodogsplash."""

    async def run(self, action: NacAction, mac: str, minutes: int | None) -> NacResult:
        logger.info("nac_dry_run", action=action, mac=mac, minutes=minutes)
        return NacResult(action=action, mac=mac, minutes=minutes, ok=True, output="dry run")
