"""
Pydantic schemas for API request/response contracts.

Field names are snake_case in Python and camelCase on the wire
(plateNumber, paymentUrl, ...); both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from engine.models import OrderRequest


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Request schemas
class OrderRequestBody(_CamelModel):
    """
    Body of POST /vignette/order (JSON or form-encoded).

    Required-field and email checks happen in the engine so JSON and form
    submissions fail the same way.
    """

    plate_number: str = Field(default="", alias="plateNumber")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    vignette_type: str = Field(default="annual", alias="vignetteType")
    vehicle_type: str = Field(default="car", alias="vehicleType")
    email: str = ""
    payment_method: str = Field(default="creditcard", alias="paymentMethod")
    country: str = "GB"

    @field_validator("plate_number", "email", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return "" if v is None else str(v)

    @field_validator("vignette_type", "vehicle_type", "payment_method", "country", mode="before")
    @classmethod
    def blank_to_default(cls, v: Optional[str], info) -> str:
        if v is None or not str(v).strip():
            return cls.model_fields[info.field_name].default
        return str(v)

    def to_order(self) -> OrderRequest:
        return OrderRequest(
            plate_number=self.plate_number,
            email=self.email,
            start_date=self.start_date or None,
            vignette_type=self.vignette_type,
            vehicle_type=self.vehicle_type,
            payment_method=self.payment_method,
            country=self.country,
        )


# Response schemas
class OrderResponse(_CamelModel):
    success: Literal[True] = True
    method: Literal["captured", "fallback"]
    order_id: str = Field(alias="orderId")
    payment_url: str = Field(alias="paymentUrl")
    status: Literal["pending"] = "pending"
    message: str = "Vignette order created successfully"
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorResponse(_CamelModel):
    success: Literal[False] = False
    error: str
    last_state: Optional[str] = Field(default=None, alias="lastState")
    timestamp: datetime = Field(default_factory=_utcnow)


class StatusResponse(_CamelModel):
    success: bool = True
    order_id: str = Field(alias="orderId")
    method: Literal["direct_api", "mock"]
    status: Optional[str] = None
    data: Optional[dict] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class DiscoveredEndpoint(_CamelModel):
    endpoint: str
    status: int
    content_type: Optional[str] = Field(default=None, alias="contentType")


class DiscoverResponse(_CamelModel):
    success: bool = True
    discovered_endpoints: list[DiscoveredEndpoint] = Field(alias="discoveredEndpoints")
    message: str = "API endpoint discovery completed"
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthResponse(BaseModel):
    success: bool = True
    status: str = "healthy"
    service: str = "Swiss Vignette Automation API"
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=_utcnow)
