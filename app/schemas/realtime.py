"""Schemas for the notification WebSocket wire protocol."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserType(str, Enum):
    """Roles a connection can announce."""

    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    DELIVERY_PARTNER = "delivery_partner"
    ADMIN = "admin"


class WireModel(BaseModel):
    """Base model using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeliveryFilter(WireModel):
    """Partial identity predicate; absent fields are wildcards."""

    user_id: int | None = None
    user_type: UserType | None = None
    restaurant_id: int | None = None

    def is_empty(self) -> bool:
        return self.user_id is None and self.user_type is None and self.restaurant_id is None


class AuthenticateMessage(WireModel):
    """Inbound identity announcement."""

    type: Literal["authenticate"]
    user_id: int | None = None
    user_type: UserType | None = None
    restaurant_id: int | None = None


class PingMessage(WireModel):
    """Inbound keep-alive."""

    type: Literal["ping"]
    timestamp: float | None = None


class ClientDisconnectMessage(WireModel):
    """Inbound notice sent before a client closes on purpose."""

    type: Literal["client_disconnect"]


ClientMessage = Annotated[
    AuthenticateMessage | PingMessage | ClientDisconnectMessage,
    Field(discriminator="type"),
]

CLIENT_MESSAGE_TYPES = frozenset({"authenticate", "ping", "client_disconnect"})


class AuthenticationSuccessMessage(BaseModel):
    type: Literal["authentication_success"] = "authentication_success"
    message: str = "Successfully authenticated"


class PongMessage(BaseModel):
    type: Literal["pong"] = "pong"
