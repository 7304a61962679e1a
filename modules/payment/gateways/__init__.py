"""
Payment Gateway Abstraction
=============================
Each gateway implements init_payment() and get_transaction().
Registry pattern for gateway lookup by name.
"""

import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

logger = logging.getLogger("receipts.gateway")


@dataclass
class GatewayInitRequest:
    """Input for creating a hosted-page session."""
    reg_id: str
    good_url: str
    error_url: str
    server_callback_url: Optional[str] = None   # None → no server-to-server feedback
    action_type: str = "J4"
    amount_minor: Optional[int] = None          # None → open amount chosen on the hosted page
    create_token: bool = False
    feedback_method: Optional[str] = None


@dataclass
class GatewayInitResult:
    """Result of init_payment()."""
    success: bool
    redirect_url: Optional[str] = None
    error_message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayLookupResult:
    """Result of get_transaction()."""
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


class BaseGateway:
    """Abstract gateway interface."""
    name: str = ""

    async def init_payment(self, req: GatewayInitRequest) -> GatewayInitResult:
        raise NotImplementedError

    async def get_transaction(self, transaction_id: str) -> GatewayLookupResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        pass


# ── Registry ──

_GATEWAYS: Dict[str, BaseGateway] = {}


def register_gateway(gw: BaseGateway):
    _GATEWAYS[gw.name] = gw


def get_gateway(name: str) -> Optional[BaseGateway]:
    return _GATEWAYS.get(name)


def get_all_gateway_names() -> List[str]:
    return list(_GATEWAYS.keys())
