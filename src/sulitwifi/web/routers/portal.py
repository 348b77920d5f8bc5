from fastapi import APIRouter
from pydantic import BaseModel, Field

from sulitwifi.core.modules.portal.models import PublicSettings
from sulitwifi.core.modules.session.models import SessionView
from sulitwifi.web.deps import AppDep, ClientMacDep, OwnClientMacDep
from sulitwifi.web.openapi import ErrorResponse

router = APIRouter(tags=["portal"])


class VoucherRedeemRequest(BaseModel):
    """Voucher redemption request."""

    code: str = Field(..., min_length=1, description="Voucher code, case-insensitive")


class ProbeResponse(BaseModel):
    """Portal probe result."""

    authenticated: bool = Field(..., description="Whether the client already has a live session")
    session: SessionView | None = Field(None, description="The live session, if any")


@router.get(
    "/public/settings",
    summary="Get portal settings",
    description="Hotspot name, portal title and coin slot availability for the captive portal page.",
    operation_id="getPublicSettings",
)
async def get_public_settings(app: AppDep) -> PublicSettings:
    return app.get_public_settings()


@router.get(
    "/portal/probe",
    summary="Register a portal visit",
    description=(
        "Called by the captive portal page when it loads. "
        "A client without a live session becomes the candidate for the next inserted coin."
    ),
    operation_id="probePortal",
    responses={
        200: {"description": "Probe recorded"},
        400: {"model": ErrorResponse, "description": "Client MAC missing or malformed"},
    },
)
async def probe(app: AppDep, mac: ClientMacDep) -> ProbeResponse:
    session = await app.probe(mac)
    return ProbeResponse(authenticated=session is not None, session=session)


@router.post(
    "/sessions/voucher",
    summary="Redeem a voucher",
    description="Claim a voucher code and start a session of the voucher's duration for the client.",
    operation_id="redeemVoucher",
    status_code=201,
    responses={
        201: {"description": "Session started"},
        400: {"model": ErrorResponse, "description": "Client MAC missing or malformed"},
        404: {"model": ErrorResponse, "description": "Unknown voucher code"},
        409: {"model": ErrorResponse, "description": "Voucher already used"},
        503: {"model": ErrorResponse, "description": "Temporarily unavailable, retry"},
    },
)
async def redeem_voucher(voucher_data: VoucherRedeemRequest, app: AppDep, mac: ClientMacDep) -> SessionView:
    """Redeem a voucher for the calling client."""
    return await app.redeem_voucher(mac, voucher_data.code)


@router.post(
    "/sessions/coin",
    summary="Redeem an inserted coin",
    description="Start a 15 minute session for the client if a coin was inserted within the last two minutes.",
    operation_id="redeemCoin",
    status_code=201,
    responses={
        201: {"description": "Session started"},
        400: {"model": ErrorResponse, "description": "Client MAC missing or malformed"},
        409: {"model": ErrorResponse, "description": "No recent coin, insert one and retry"},
        503: {"model": ErrorResponse, "description": "Coin slot disabled or temporarily unavailable"},
    },
)
async def redeem_coin(app: AppDep, mac: ClientMacDep) -> SessionView:
    return await app.redeem_coin(mac)


@router.get(
    "/sessions/current",
    summary="Get session status",
    description="Remaining time of the calling client's session.",
    operation_id="getCurrentSession",
    responses={
        200: {"description": "Live session"},
        404: {"model": ErrorResponse, "description": "No live session"},
    },
)
async def get_current_session(app: AppDep, mac: ClientMacDep) -> SessionView:
    return await app.get_session(mac)


@router.delete(
    "/sessions/current",
    summary="Log out",
    description=(
        "End the calling client's session and revoke its network access. Succeeds without a session. "
        "The gateway header or ARP entry decides the client; the mac parameter is only a fallback."
    ),
    operation_id="logoutSession",
    status_code=204,
    responses={204: {"description": "Logged out"}},
)
async def logout(app: AppDep, mac: OwnClientMacDep) -> None:
    await app.logout(mac)
