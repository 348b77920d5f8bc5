from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

# Paths open to hotspot clients and the coin detector; everything else needs an admin token
PUBLIC_PATH_PREFIXES = ("/health", "/api/public/", "/api/portal/", "/api/sessions/", "/api/coin/")
PUBLIC_ENDPOINTS = {("POST", "/api/admin/login")}


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="SULIT WiFi API",
            version="0.1.0",
            summary="Captive portal sessions, vouchers and coin redemption",
            routes=app.routes,
        )

        # Add security schemes
        components = openapi_schema.setdefault("components", {})
        components["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "description": "Admin bearer token (preferred)",
            },
            "AdminTokenCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": "admin_token",
                "description": "Admin token stored in cookie",
            },
            "DeviceKey": {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Shared key of the coin detector",
            },
        }

        # Apply admin security globally (overridden below for public endpoints)
        openapi_schema["security"] = [
            {"BearerAuth": []},
            {"AdminTokenCookie": []},
        ]

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if path.startswith("/api/coin/"):
                    operation["security"] = [{"DeviceKey": []}]
                elif path.startswith(PUBLIC_PATH_PREFIXES) or (method.upper(), path) in PUBLIC_ENDPOINTS:
                    # Mark as public endpoint (no security required)
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Invalid voucher code.", "type": "invalid_voucher"},
                {"message": "Voucher has already been used.", "type": "voucher_already_used"},
                {"message": "No coin detected. Insert a coin and try again.", "type": "no_recent_coin"},
            ]
        }
    }
