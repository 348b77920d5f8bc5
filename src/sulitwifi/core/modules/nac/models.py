from enum import StrEnum

from pydantic import BaseModel


class NacAction(StrEnum):
    """ndsctl subcommands issued by the portal."""

    AUTHORIZE = "auth"
    REVOKE = "deauth"

    @property
    def expected_output(self) -> str:
        """Word ndsctl prints on success, matched case-insensitively."""
        return "authenticated" if self is NacAction.AUTHORIZE else "deauthenticated"


class NacResult(BaseModel):
    """Outcome of one authorize/revoke call. Logged, never persisted."""

    action: NacAction
    mac: str
    minutes: int | None = None
    ok: bool
    exit_code: int | None = None
    output: str = ""
    error: str | None = None  # Spawn error, timeout or unexpected output
    attempts: int = 1
