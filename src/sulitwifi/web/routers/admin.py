from typing import Annotated

from fastapi import APIRouter, Query, Response
from pydantic import BaseModel, Field

from sulitwifi.core.modules.admin.models import DashboardStats
from sulitwifi.core.modules.session.models import SessionView
from sulitwifi.core.modules.voucher.models import Voucher
from sulitwifi.errors import ValidationError
from sulitwifi.utils import is_mac, normalize_mac
from sulitwifi.web.deps import AdminTokenDep, AppDep
from sulitwifi.web.openapi import ErrorResponse

router = APIRouter(prefix="/admin", tags=["admin"])


class LoginRequest(BaseModel):
    """Admin authentication request."""

    password: str = Field(..., description="Admin password")


class LoginResponse(BaseModel):
    """Admin authentication response."""

    token: str = Field(..., description="Admin token for subsequent requests")


class GenerateVouchersRequest(BaseModel):
    """Batch voucher generation request."""

    duration_seconds: int = Field(..., description="Session length granted by each voucher")
    count: int = Field(1, description="Number of vouchers to generate (1-100)")
    code: str | None = Field(None, description="Use this exact code instead of generating one (count must be 1)")


@router.post(
    "/login",
    summary="Admin login",
    description="Authenticate with the admin password to receive a token.",
    operation_id="adminLogin",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid password"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, response: Response) -> LoginResponse:
    token = await app.admin_login(login_data.password)
    response.set_cookie(key="admin_token", value=token, httponly=True, samesite="lax", max_age=8 * 60 * 60)
    return LoginResponse(token=token)


@router.post(
    "/logout",
    summary="Admin logout",
    description="Invalidate the current admin token.",
    operation_id="adminLogout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(app: AppDep, token: AdminTokenDep, response: Response) -> None:
    await app.admin_logout(token)
    response.delete_cookie("admin_token")


@router.get(
    "/stats",
    summary="Dashboard counters",
    description="Live sessions and voucher inventory.",
    operation_id="getStats",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def get_stats(app: AppDep, token: AdminTokenDep) -> DashboardStats:
    return await app.get_stats(token)


@router.get(
    "/vouchers",
    summary="List vouchers",
    description="All vouchers newest first, optionally only used or only unused ones.",
    operation_id="listVouchers",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def list_vouchers(
    app: AppDep,
    token: AdminTokenDep,
    used: Annotated[bool | None, Query(description="Filter by redemption state")] = None,
) -> list[Voucher]:
    return await app.list_vouchers(token, used)


@router.post(
    "/vouchers",
    summary="Create vouchers",
    description="Generate a batch of vouchers with unique codes, or add a single voucher with a chosen code.",
    operation_id="createVouchers",
    status_code=201,
    responses={
        201: {"description": "Vouchers created"},
        400: {"model": ErrorResponse, "description": "Invalid duration or count"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        409: {"model": ErrorResponse, "description": "Voucher code already exists"},
    },
)
async def create_vouchers(vouchers_data: GenerateVouchersRequest, app: AppDep, token: AdminTokenDep) -> list[Voucher]:
    if vouchers_data.code is not None:
        if vouchers_data.count != 1:
            raise ValidationError("A fixed code can only be used for a single voucher")
        return [await app.add_voucher(token, vouchers_data.code, vouchers_data.duration_seconds)]
    return await app.generate_vouchers(token, vouchers_data.duration_seconds, vouchers_data.count)


@router.get(
    "/sessions",
    summary="List live sessions",
    description="Clients currently holding network access, soonest expiry first.",
    operation_id="listSessions",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def list_sessions(app: AppDep, token: AdminTokenDep) -> list[SessionView]:
    return await app.list_sessions(token)


@router.delete(
    "/sessions/{mac}",
    summary="Terminate a session",
    description="Disconnect a client and revoke its network access.",
    operation_id="terminateSession",
    status_code=204,
    responses={
        204: {"description": "Session terminated"},
        400: {"model": ErrorResponse, "description": "Malformed MAC address"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def terminate_session(mac: str, app: AppDep, token: AdminTokenDep) -> None:
    if not is_mac(mac):
        raise ValidationError(f"Invalid MAC address '{mac}'")
    await app.terminate_session(token, normalize_mac(mac))
