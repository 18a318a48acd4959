"""Error kinds raised by the simulation core."""
from __future__ import annotations


class SandboxError(Exception):
    """Base class for every error raised by trade_sandbox."""


class ValidationError(SandboxError, ValueError):
    """Bad configuration, reported before any simulation runs."""

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class OrderError(SandboxError):
    """A requested order cannot be honoured. State is left unchanged."""


class InsufficientFunds(OrderError):
    def __init__(self, needed: float, available: float) -> None:
        self.needed = needed
        self.available = available
        super().__init__(f"Insufficient cash. Need ${needed:,.2f}, have ${available:,.2f}")


class InsufficientShares(OrderError):
    def __init__(self, needed: float, available: float) -> None:
        self.needed = needed
        self.available = available
        super().__init__(f"Insufficient stock. Need {needed:g} shares, have {available:g}")


class BacktestError(SandboxError, RuntimeError):
    """Unexpected failure inside a backtest run; no report is produced."""


class BotError(SandboxError, RuntimeError):
    """A scheduled bot step failed and the bot was stopped."""
