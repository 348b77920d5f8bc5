from pydantic import BaseModel, Field


class PublicSettings(BaseModel):
    """Settings the captive portal page needs before login."""

    ssid: str = Field(..., description="Hotspot network name")
    portal_title: str = Field(..., description="Title shown on the portal page")
    coin_slot_enabled: bool = Field(..., description="Whether coin redemption is offered")
    coin_session_seconds: int = Field(..., description="Access time bought by one coin")


class CoinPulse(BaseModel):
    """Result of reporting one coin-acceptor pulse."""

    accepted: bool = Field(..., description="False when the pulse was debounced or the slot is off")
    pulse_count: int = Field(..., description="Pulses recorded since installation")
