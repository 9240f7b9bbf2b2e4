"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from domain.order import Order, ShippingAddress, TrackingInfo
from domain.payout import BankDetails, Payout
from domain.product import Product
from services.bank_account_service import RegisteredBankAccount
from services.payment_gateway import Bank


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps from clients are taken as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================================
# Product Models
# ============================================================================

class ProductCreateRequest(BaseModel):
    """Request to list a product for sale."""
    title: str = Field(..., min_length=1, description="Listing title")
    price: Decimal = Field(..., ge=0, description="Unit price in naira")
    is_free: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Used bicycle",
                "price": "85000.00",
                "is_free": False
            }
        }


class ProductResponse(BaseModel):
    """Single product listing in API response."""
    product_id: str
    owner_id: str
    title: str
    price: Decimal
    is_free: bool
    status: str  # "active", "inactive" or "sold"
    sold_by_order_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, product: Product) -> "ProductResponse":
        return cls(
            product_id=product.product_id,
            owner_id=product.owner_id,
            title=product.title,
            price=product.price,
            is_free=product.is_free,
            status=product.status.value,
            sold_by_order_id=product.sold_by_order_id,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductListResponse(BaseModel):
    items: List[ProductResponse]
    total_count: int


# ============================================================================
# Order Models
# ============================================================================

class ShippingAddressModel(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    postal_code: Optional[str] = None

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            full_name=self.full_name,
            phone_number=self.phone_number,
            street=self.street,
            city=self.city,
            state=self.state,
            country=self.country,
            postal_code=self.postal_code,
        )

    @classmethod
    def from_domain(cls, address: ShippingAddress) -> "ShippingAddressModel":
        return cls(
            full_name=address.full_name,
            phone_number=address.phone_number,
            street=address.street,
            city=address.city,
            state=address.state,
            country=address.country,
            postal_code=address.postal_code,
        )


class TrackingInfoModel(BaseModel):
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None

    def to_domain(self) -> TrackingInfo:
        return TrackingInfo(
            carrier=self.carrier,
            tracking_number=self.tracking_number,
            estimated_delivery=_as_utc(self.estimated_delivery),
        )


class OrderCreateRequest(BaseModel):
    """Request to place an order for a listing."""
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    shipping_address: ShippingAddressModel

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "8f14e45fceea167a5a36dedd4bea2543",
                "quantity": 1,
                "shipping_address": {
                    "full_name": "Ada Obi",
                    "phone_number": "+2348012345678",
                    "street": "12 Allen Avenue",
                    "city": "Ikeja",
                    "state": "Lagos",
                    "country": "Nigeria",
                    "postal_code": "100271"
                }
            }
        }


class CheckoutRequest(OrderCreateRequest):
    """Place an order paid through the inline checkout widget."""
    payment_reference: str = Field(..., min_length=1, description="Gateway transaction reference")


class OrderStatusUpdateRequest(BaseModel):
    """Request to move an order's delivery status."""
    status: str = Field(..., description="Target delivery status")
    tracking_info: Optional[TrackingInfoModel] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "shipped",
                "tracking_info": {
                    "carrier": "GIG Logistics",
                    "tracking_number": "GIG123456",
                    "estimated_delivery": "2025-01-05T12:00:00Z"
                }
            }
        }


class PaymentConfirmationRequest(BaseModel):
    reference: str = Field(..., min_length=1, description="Gateway transaction reference")


class OrderResponse(BaseModel):
    """Single order in API response."""
    order_id: str
    buyer_id: str
    seller_id: str
    product_id: str
    product_title: str
    quantity: int
    amount: Decimal
    payment_status: str
    delivery_status: str
    shipping_address: ShippingAddressModel
    tracking_info: Optional[TrackingInfoModel] = None
    payment_reference: Optional[str] = None
    payout_id: Optional[str] = None
    notes: Optional[str] = None
    order_date: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        tracking = None
        if order.tracking_info is not None:
            tracking = TrackingInfoModel(
                carrier=order.tracking_info.carrier,
                tracking_number=order.tracking_info.tracking_number,
                estimated_delivery=order.tracking_info.estimated_delivery,
            )
        return cls(
            order_id=order.order_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            product_id=order.product_id,
            product_title=order.product_title,
            quantity=order.quantity,
            amount=order.amount,
            payment_status=order.payment_status.value,
            delivery_status=order.delivery_status.value,
            shipping_address=ShippingAddressModel.from_domain(order.shipping_address),
            tracking_info=tracking,
            payment_reference=order.payment_reference,
            payout_id=order.payout_id,
            notes=order.notes,
            order_date=order.order_date,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total_count: int


# ============================================================================
# Payout Models
# ============================================================================

class BankDetailsModel(BaseModel):
    account_name: str
    account_number: str = Field(..., min_length=1)
    bank_name: str
    bank_code: str = Field(..., min_length=1)

    def to_domain(self) -> BankDetails:
        return BankDetails(
            account_name=self.account_name,
            account_number=self.account_number,
            bank_name=self.bank_name,
            bank_code=self.bank_code,
        )

    @classmethod
    def from_domain(cls, details: BankDetails) -> "BankDetailsModel":
        return cls(
            account_name=details.account_name,
            account_number=details.account_number,
            bank_name=details.bank_name,
            bank_code=details.bank_code,
        )


class PayoutCreateRequest(BaseModel):
    """
    Request a payout of completed order proceeds.

    Omitting ``amount`` withdraws the full available balance; omitting
    ``bank_details`` pays into the account registered on the profile.
    """
    amount: Optional[Decimal] = Field(None, gt=0)
    bank_details: Optional[BankDetailsModel] = None

    class Config:
        json_schema_extra = {
            "example": {
                "amount": "85000.00"
            }
        }


class PayoutSettlementRequest(BaseModel):
    """Final transfer outcome reported by the gateway."""
    succeeded: bool
    reason: Optional[str] = None


class PayoutResponse(BaseModel):
    payout_id: str
    seller_id: str
    amount: Decimal
    status: str
    bank_details: BankDetailsModel
    recipient_code: str
    order_ids: List[str]
    request_date: datetime
    processed_date: Optional[datetime] = None
    transfer_reference: Optional[str] = None
    transfer_code: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, payout: Payout) -> "PayoutResponse":
        return cls(
            payout_id=payout.payout_id,
            seller_id=payout.seller_id,
            amount=payout.amount,
            status=payout.status.value,
            bank_details=BankDetailsModel.from_domain(payout.bank_details),
            recipient_code=payout.recipient_code,
            order_ids=list(payout.order_ids),
            request_date=payout.request_date,
            processed_date=payout.processed_date,
            transfer_reference=payout.transfer_reference,
            transfer_code=payout.transfer_code,
            notes=payout.notes,
        )


class PayoutListResponse(BaseModel):
    items: List[PayoutResponse]
    total_count: int


class PayoutBalanceResponse(BaseModel):
    available: Decimal
    currency: str = "NGN"


class PayoutBatchResponse(BaseModel):
    """Result of initiating transfers for pending payouts."""
    processed: List[PayoutResponse]
    failures: Dict[str, str]


# ============================================================================
# Bank Account Models
# ============================================================================

class BankAccountRequest(BaseModel):
    """Register the seller's payout account."""
    account_number: str = Field(..., min_length=10, max_length=10, description="10-digit NUBAN")
    bank_code: str = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "account_number": "0123456789",
                "bank_code": "058"
            }
        }


class BankAccountResponse(BaseModel):
    bank_details: BankDetailsModel
    recipient_code: str

    @classmethod
    def from_domain(cls, account: RegisteredBankAccount) -> "BankAccountResponse":
        return cls(
            bank_details=BankDetailsModel.from_domain(account.bank_details),
            recipient_code=account.recipient_code,
        )


class BankResponse(BaseModel):
    id: int
    name: str
    code: str
    country: str

    @classmethod
    def from_domain(cls, bank: Bank) -> "BankResponse":
        return cls(id=bank.id, name=bank.name, code=bank.code, country=bank.country)


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "PRODUCT_UNAVAILABLE",
                "detail": "Product is no longer available",
                "status_code": 409
            }
        }
