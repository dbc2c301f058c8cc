"""
Normalised account / order data models.

Venue payloads are loosely shaped (numbers as strings, optional fields that
come and go between endpoints and market segments). Each model has a
``from_venue`` constructor that is the single place those payloads are
validated; consumers only ever see these frozen models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _num(raw: Dict[str, Any], *keys: str, default: float = 0.0) -> float:
    """First parseable float among *keys*, else *default*."""
    for key in keys:
        value = raw.get(key)
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return default


def _ms_to_datetime(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Balances & positions ─────────────────────────────────────────────────────


class Balance(_Frozen):
    """Spot balance for one asset."""

    asset: str
    free: float = 0.0
    locked: float = 0.0

    @property
    def total(self) -> float:
        return self.free + self.locked

    @classmethod
    def from_venue(cls, raw: Dict[str, Any]) -> "Balance":
        return cls(
            asset=str(raw.get("asset") or raw.get("coin") or ""),
            free=_num(raw, "free"),
            locked=_num(raw, "locked"),
        )


class DerivativePosition(_Frozen):
    """Open derivatives position. ``size`` is signed (negative = short)."""

    symbol: str
    size: float
    entry_price: float = 0.0
    mark_price: float = 0.0
    unrealized_pnl: float = 0.0
    leverage: Optional[float] = None
    roe: float = 0.0  # percent

    @classmethod
    def from_venue(cls, raw: Dict[str, Any]) -> "DerivativePosition":
        size = _num(raw, "positionAmt")
        entry = _num(raw, "entryPrice")
        mark = _num(raw, "markPrice")
        roe = _num(raw, "percentage")
        # Venue omits ROE on some endpoints; derive it from the price move
        if roe == 0 and entry > 0 and mark > 0:
            roe = (mark - entry) / entry * 100
            if size < 0:
                roe = -roe  # shorts gain when the mark falls
        leverage = _num(raw, "leverage", default=0.0)
        return cls(
            symbol=str(raw.get("symbol", "")),
            size=size,
            entry_price=entry,
            mark_price=mark,
            unrealized_pnl=_num(raw, "unrealizedProfit", "unRealizedProfit"),
            leverage=leverage or None,
            roe=roe,
        )


# ── Orders ───────────────────────────────────────────────────────────────────


class OrderStatus(str, Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


TERMINAL_STATUSES = frozenset(
    {OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.REJECTED, OrderStatus.EXPIRED}
)


class OrderRecord(_Frozen):
    """One order as acknowledged by the venue."""

    id: str
    symbol: str
    side: str
    type: str
    quantity: float
    executed_quantity: float = 0.0
    price: Optional[float] = None  # None for market orders
    status: OrderStatus = OrderStatus.NEW
    submitted_at: Optional[datetime] = None
    market: str = "spot"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_venue(cls, raw: Dict[str, Any], market: str = "spot") -> "OrderRecord":
        price = _num(raw, "price")
        return cls(
            id=str(raw.get("orderId", raw.get("id", ""))),
            symbol=str(raw.get("symbol", "")),
            side=str(raw.get("side", "")).upper(),
            type=str(raw.get("type", "")).upper(),
            quantity=_num(raw, "origQty", "quantity"),
            executed_quantity=_num(raw, "executedQty"),
            price=price if price > 0 else None,
            status=OrderStatus.parse(raw.get("status", "NEW")),
            submitted_at=_ms_to_datetime(raw.get("time") or raw.get("transactTime") or raw.get("updateTime")),
            market=market,
        )


class TradeRecord(_Frozen):
    id: str
    symbol: str
    side: str
    price: float
    quantity: float
    commission: float = 0.0
    realized_pnl: float = 0.0
    executed_at: Optional[datetime] = None
    market: str = "derivatives"

    @classmethod
    def from_venue(cls, raw: Dict[str, Any], market: str = "derivatives") -> "TradeRecord":
        side = raw.get("side")
        if side is None and "isBuyer" in raw:
            side = "BUY" if raw["isBuyer"] else "SELL"
        return cls(
            id=str(raw.get("id", "")),
            symbol=str(raw.get("symbol", "")),
            side=str(side or "").upper(),
            price=_num(raw, "price"),
            quantity=_num(raw, "qty"),
            commission=_num(raw, "commission"),
            realized_pnl=_num(raw, "realizedPnl"),
            executed_at=_ms_to_datetime(raw.get("time")),
            market=market,
        )


class IncomeRecord(_Frozen):
    """Funding fee, realised P&L or transfer line from the income history."""

    symbol: str = ""
    income_type: str
    income: float
    asset: str = ""
    booked_at: Optional[datetime] = None

    @classmethod
    def from_venue(cls, raw: Dict[str, Any]) -> "IncomeRecord":
        return cls(
            symbol=str(raw.get("symbol", "")),
            income_type=str(raw.get("incomeType", "")),
            income=_num(raw, "income"),
            asset=str(raw.get("asset", "")),
            booked_at=_ms_to_datetime(raw.get("time")),
        )


# ── Composed views ───────────────────────────────────────────────────────────


class AccountSnapshot(_Frozen):
    """Fully composed account view at one point in time. Replaced, never mutated."""

    balances: List[Balance] = Field(default_factory=list)
    positions: List[DerivativePosition] = Field(default_factory=list)
    prices: Dict[str, float] = Field(default_factory=dict)
    spot_value: float = 0.0
    derivatives_value: float = 0.0
    baseline_value: float = 0.0     # stable assets only, never depends on prices
    unrealized_pnl: float = 0.0
    can_trade: bool = False
    spot_available: bool = False
    derivatives_available: bool = False
    last_updated: datetime

    @property
    def total_value(self) -> float:
        return self.spot_value + self.derivatives_value


class OrderData(_Frozen):
    """Open orders across both segments, newest first."""

    open_orders: List[OrderRecord] = Field(default_factory=list)
    last_updated: datetime


class HistoryData(_Frozen):
    """Secondary (non-critical) history lists. Any list may be empty on failure."""

    order_history: List[OrderRecord] = Field(default_factory=list)
    trade_history: List[TradeRecord] = Field(default_factory=list)
    funding_history: List[IncomeRecord] = Field(default_factory=list)
    transaction_history: List[IncomeRecord] = Field(default_factory=list)
    positions: List[DerivativePosition] = Field(default_factory=list)
    last_updated: datetime


class BackupSnapshot(_Frozen):
    """Last known-good display data, used only for failure recovery."""

    account: Optional[AccountSnapshot] = None
    open_orders: List[OrderRecord] = Field(default_factory=list)
    order_history: List[OrderRecord] = Field(default_factory=list)
    last_valid_update: float  # clock seconds

    @property
    def has_order_data(self) -> bool:
        return bool(self.open_orders or self.order_history)


class CancelResult(_Frozen):
    """Outcome of a cancellation request that did not raise."""

    accepted: bool
    order_id: str
    symbol: str
    status: Optional[OrderStatus] = None
    message: str = ""
