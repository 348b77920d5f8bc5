from fastapi import APIRouter

from sulitwifi.core.modules.portal.models import CoinPulse
from sulitwifi.web.deps import AppDep, DeviceKeyDep
from sulitwifi.web.openapi import ErrorResponse

router = APIRouter(tags=["coin"])


@router.post(
    "/coin/pulse",
    summary="Report a coin pulse",
    description="Called by the coin detector for every pulse of the coin acceptor. Pulses closer than 120 ms are ignored.",
    operation_id="reportCoinPulse",
    responses={
        200: {"description": "Pulse processed"},
        403: {"model": ErrorResponse, "description": "Missing or invalid device key"},
    },
)
async def report_coin_pulse(app: AppDep, api_key: DeviceKeyDep) -> CoinPulse:
    return await app.register_coin_pulse(api_key)
