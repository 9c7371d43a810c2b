"""Wire schemas for session creation and webhook decoding.

Python attributes are snake_case; the wire keeps the camelCase names the
callers and downstream consumers already use.
"""

from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class PaymentItem(BaseModel):
    """One purchasable line, priced in major currency units."""

    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)


class PaymentSessionRequest(BaseModel):
    """Payload accepted by `POST /payments/create-payment-session`."""

    model_config = ConfigDict(populate_by_name=True)

    currency: str = Field(min_length=3, max_length=3)
    order_id: str = Field(alias="orderId", min_length=1)
    items: list[PaymentItem] = Field(min_length=1)


class PaymentSessionResponse(BaseModel):
    """Minimal view of the created checkout session."""

    model_config = ConfigDict(populate_by_name=True)

    cancel_url: str | None = Field(alias="cancelUrl")
    success_url: str | None = Field(alias="successUrl")
    url: str | None


class ChargeMetadata(BaseModel):
    order_id: str | None = Field(default=None, alias="orderId")


class Charge(BaseModel):
    id: str
    metadata: ChargeMetadata = Field(default_factory=ChargeMetadata)
    receipt_url: str | None = None


class ChargeData(BaseModel):
    object: Charge


class ChargeSucceededEvent(BaseModel):
    """`charge.succeeded`: the only event type that triggers an emission."""

    id: str
    type: Literal["charge.succeeded"]
    data: ChargeData


class UnhandledEvent(BaseModel):
    """Any other provider event; acknowledged and ignored."""

    id: str | None = None
    type: str


HANDLED_EVENT_TYPES = {"charge.succeeded"}


def _event_tag(value: Any) -> str:
    if isinstance(value, dict):
        event_type = value.get("type")
    else:
        event_type = getattr(value, "type", None)
    return event_type if event_type in HANDLED_EVENT_TYPES else "unhandled"


WebhookEvent = Annotated[
    Union[
        Annotated[ChargeSucceededEvent, Tag("charge.succeeded")],
        Annotated[UnhandledEvent, Tag("unhandled")],
    ],
    Discriminator(_event_tag),
]

webhook_event_adapter: TypeAdapter[WebhookEvent] = TypeAdapter(WebhookEvent)


class PaymentConfirmedMessage(BaseModel):
    """Downstream contract emitted once per `charge.succeeded` delivery."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    stripe_payment_id: str = Field(alias="stripePaymentId")
    order_id: str | None = Field(alias="orderId")
    receipt_url: str | None = Field(alias="receiptUrl")

    @classmethod
    def from_charge(cls, charge: Charge) -> "PaymentConfirmedMessage":
        return cls(
            stripe_payment_id=charge.id,
            order_id=charge.metadata.order_id,
            receipt_url=charge.receipt_url,
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
