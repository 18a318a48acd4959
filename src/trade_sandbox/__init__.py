from .bot import BotConfig, BotState, TradingBot
from .broker import PaperBroker
from .engine.backtest import BacktestConfig, BacktestEngine, PerformanceReport, run_backtest
from .errors import (
    BacktestError,
    BotError,
    InsufficientFunds,
    InsufficientShares,
    OrderError,
    SandboxError,
    ValidationError,
)
from .market.prices import generate_price_path, sample_history
from .orders import OrderBook
from .pnl import fifo_realized_pnl
from .portfolio import PortfolioState
from .strategy import Position, StrategyParams, evaluate
from .types import Candle, Order, OrderSide, OrderStatus, OrderType, Signal, StrategyName, Trade

__all__ = [
    # Engine
    "BacktestConfig",
    "BacktestEngine",
    "PerformanceReport",
    "run_backtest",
    # Live bot
    "BotConfig",
    "BotState",
    "TradingBot",
    "OrderBook",
    # Portfolio
    "PaperBroker",
    "PortfolioState",
    "fifo_realized_pnl",
    # Market data
    "generate_price_path",
    "sample_history",
    # Strategy
    "Position",
    "StrategyParams",
    "evaluate",
    # Errors
    "SandboxError",
    "ValidationError",
    "OrderError",
    "InsufficientFunds",
    "InsufficientShares",
    "BacktestError",
    "BotError",
    # Types
    "Candle",
    "Order",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "Signal",
    "StrategyName",
    "Trade",
]
