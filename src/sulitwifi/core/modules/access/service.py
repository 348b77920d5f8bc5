import secrets

from sulitwifi.core.core import Service
from sulitwifi.core.modules.admin.models import AdminToken
from sulitwifi.errors import AccessDeniedError, AuthenticationError


class AccessService(Service):
    async def ensure_admin(self, token: AdminToken) -> None:
        """Ensure the token belongs to a logged-in admin."""
        if not await self.core.services.admin.is_token_valid(token):
            raise AuthenticationError("Invalid or expired session")

    def ensure_coin_device(self, api_key: str | None) -> None:
        """Ensure the caller is the coin detector, identified by the shared device key."""
        expected = self.core.config.device_api_key
        if not expected:
            raise AccessDeniedError("Coin detector access is not configured")
        if api_key is None or not secrets.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
            raise AccessDeniedError("Invalid device key")
