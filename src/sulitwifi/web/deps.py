import asyncio
from typing import Annotated, cast

from fastapi import Depends, Header, Query, Request
from fastapi.security import APIKeyCookie, APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from sulitwifi.app import App
from sulitwifi.core.modules.admin.models import AdminToken
from sulitwifi.errors import AuthenticationError, ValidationError
from sulitwifi.logging import bind_client_mac
from sulitwifi.utils import is_mac, lookup_arp_mac, normalize_mac

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)
cookie_scheme = APIKeyCookie(name="admin_token", auto_error=False)
device_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_admin_token(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    token_cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> AdminToken:
    """Get and validate admin token from Authorization Bearer header or cookie."""

    # Check Bearer token first (preferred)
    if credentials and credentials.scheme == "Bearer":
        token = AdminToken(credentials.credentials)
        if await app.is_admin_token_valid(token):
            return token

    # Fallback to cookie
    if token_cookie:
        token = AdminToken(token_cookie)
        if await app.is_admin_token_valid(token):
            return token

    raise AuthenticationError


async def _arp_mac(request: Request) -> str | None:
    if request.client is None:
        return None
    return await asyncio.to_thread(lookup_arp_mac, request.client.host)


def _client_mac(candidate: str | None) -> str:
    if not candidate:
        raise ValidationError("Could not determine the client MAC address")
    if not is_mac(candidate):
        raise ValidationError(f"Invalid MAC address '{candidate}'")
    client_mac = normalize_mac(candidate)
    bind_client_mac(client_mac)
    return client_mac


async def get_client_mac(
    request: Request,
    mac: Annotated[str | None, Query(description="Client MAC address")] = None,
    x_client_mac: Annotated[str | None, Header(description="Client MAC set by the gateway")] = None,
) -> str:
    """Resolve the calling client's MAC: query parameter, gateway header, then the ARP table."""
    return _client_mac(mac or x_client_mac or await _arp_mac(request))


async def get_own_client_mac(
    request: Request,
    mac: Annotated[str | None, Query(description="Client MAC address, used only when the network can not tell")] = None,
    x_client_mac: Annotated[str | None, Header(description="Client MAC set by the gateway")] = None,
) -> str:
    """Resolve the MAC for endpoints that act against the caller: gateway header and ARP win over the query."""
    return _client_mac(x_client_mac or await _arp_mac(request) or mac)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
AdminTokenDep = Annotated[AdminToken, Depends(get_admin_token)]
ClientMacDep = Annotated[str, Depends(get_client_mac)]
OwnClientMacDep = Annotated[str, Depends(get_own_client_mac)]
DeviceKeyDep = Annotated[str | None, Depends(device_key_scheme)]
