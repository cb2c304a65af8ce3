"""Pydantic schemas for API requests and responses.

Sub-modules:
- gateway: Gateway configuration schemas
- transaction: Contribution / refund schemas
- webhook: Provider webhook payloads
- dashboard: Admin dashboard schemas
- utils: Common utility functions
"""
# Gateway schemas
from .gateway import GatewayConfigOut, GatewayConfigUpdate

# Transaction schemas
from .transaction import (
    BoletoCustomerIn,
    CardIn,
    ChargeOut,
    RefundRequest,
    TransactionCreate,
    TransactionCreateOut,
    TransactionOut,
)

# Webhook schemas
from .webhook import CieloWebhookIn, WebhookAck

# Dashboard schemas
from .dashboard import (
    AdminDashboard,
    DashboardKpis,
    MethodRevenue,
    MonthlyRevenue,
    RecentTransaction,
    RegionRevenue,
)

# Utilities
from .utils import format_brl, mask_secret

__all__ = [
    "GatewayConfigOut",
    "GatewayConfigUpdate",
    "BoletoCustomerIn",
    "CardIn",
    "ChargeOut",
    "RefundRequest",
    "TransactionCreate",
    "TransactionCreateOut",
    "TransactionOut",
    "CieloWebhookIn",
    "WebhookAck",
    "AdminDashboard",
    "DashboardKpis",
    "MethodRevenue",
    "MonthlyRevenue",
    "RecentTransaction",
    "RegionRevenue",
    "format_brl",
    "mask_secret",
]
