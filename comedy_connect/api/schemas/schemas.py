from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BookingRequest(BaseModel):
    show_id: str
    quantity: int


class BookingResponse(BaseModel):
    id: str
    show_id: str
    user_id: str
    quantity: int
    total_amount: int
    booking_fee: int
    platform_fee: int
    amount_payable: int
    status: str
    order_id: str | None = None
    payment_id: str | None = None
    reserved_until: str
    created_at: str | None = None


class PaymentOrderResponse(BaseModel):
    provider: str | None = None
    order_id: str | None = None
    amount: int
    currency: str
    key_id: str | None = None


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    payment: PaymentOrderResponse


class WebhookResponse(BaseModel):
    status: str
    outcome: str


class FeeSlabPayload(BaseModel):
    min_price: int
    max_price: int | None = None
    fee_percent: Decimal


class FeeConfigRequest(BaseModel):
    slabs: list[FeeSlabPayload]
    platform_fee_percent: Decimal | None = None
    booking_fee_percent: Decimal | None = None
    recompute: bool = False


class FeeConfigResponse(BaseModel):
    version: int
    platform_fee_percent: str
    booking_fee_percent: str
    slabs: list[dict]
    updated_by: str | None = None
    updated_at: str | None = None


class FeeConfigEnvelope(BaseModel):
    fee_config: FeeConfigResponse
    recomputed: int | None = None


class ShowCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    date: datetime
    venue: str = Field(min_length=1, max_length=200)
    ticket_price: int
    total_tickets: int
    comedian_ids: list[str] = Field(default_factory=list)
    custom_platform_fee: Decimal | None = None


class ShowUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    date: datetime | None = None
    venue: str | None = Field(default=None, min_length=1, max_length=200)
    ticket_price: int | None = None
    total_tickets: int | None = None
    comedian_ids: list[str] | None = None
    custom_platform_fee: Decimal | None = None


class ShowResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    date: str
    venue: str
    ticket_price: int
    total_tickets: int
    available_tickets: int | None = None
    is_published: bool
    is_disbursed: bool
    custom_platform_fee: str | None = None
    comedian_ids: list[str]
    created_by: str


class PayoutResponse(BaseModel):
    show_id: str
    bookings: int
    tickets_sold: int
    gross_revenue: int
    platform_fees: int
    booking_fees: int
    net_payout: int
    pending_bookings: int
    is_disbursed: bool


class CreatorFeeRequest(BaseModel):
    custom_platform_fee: Decimal | None = None
    recompute: bool = False


class CreatorAccountResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: str
    custom_platform_fee: str | None = None
    recomputed: int | None = None
