"""trade-sandbox CLI: backtest a strategy on a CSV or a synthetic price history."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .data import load_prices_from_csv
from .engine.backtest import PerformanceReport, run_backtest
from .errors import SandboxError
from .market.prices import default_rng
from .strategy import STRATEGY_DESCRIPTIONS, resolve_strategy
from .types import StrategyName

console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="trade-sandbox backtest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  trade-sandbox --strategy MOMENTUM --seed 7
  trade-sandbox --csv data/prices.csv --column close --fee 0.25 --initial-balance 5000
""",
    )

    # ── Data source ────────────────────────────────────────────────────────────
    parser.add_argument("--csv", default=None, help="Price CSV (default: synthetic one-year sample)")
    parser.add_argument("--column", default="close", help="Price column in the CSV (default: close)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the synthetic sample")

    # ── Strategy ───────────────────────────────────────────────────────────────
    parser.add_argument(
        "--strategy",
        default=StrategyName.BUY_LOW_SELL_HIGH.value,
        choices=[s.value for s in StrategyName],
    )
    parser.add_argument("--initial-balance", type=float, default=10_000.0)
    parser.add_argument("--fee", type=float, default=0.1, help="Transaction fee in percent")

    # ── Output ─────────────────────────────────────────────────────────────────
    parser.add_argument("--trades", type=int, default=10, help="Show the last N trades")
    parser.add_argument("--json", action="store_true", dest="json_mode")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def render_report(report: PerformanceReport, last_trades: int = 10) -> None:
    color = "green" if report.profit_loss >= 0 else "red"
    console.print(f"[bold]{report.strategy.value}[/] - {STRATEGY_DESCRIPTIONS[report.strategy]}")

    tbl = Table(title="Backtest Result", show_header=False)
    tbl.add_column("Metric")
    tbl.add_column("Value", justify="right")
    tbl.add_row("Initial Balance", f"{report.start_balance:,.2f}")
    tbl.add_row("Cash", f"{report.end_balance:,.2f}")
    tbl.add_row("Final Portfolio", f"{report.final_portfolio_value:,.2f}")
    tbl.add_row("Profit / Loss", f"[{color}]{report.profit_loss:,.2f} ({report.profit_loss_pct:.2f}%)[/]")
    tbl.add_row("Annualized Return", f"{report.annualized_return_pct:.2f}%")
    tbl.add_row("Max Drawdown", f"{report.max_drawdown_pct:.2f}%")
    tbl.add_row("Sharpe", f"{report.sharpe_ratio:.3f}")
    tbl.add_row("Volatility", f"{report.volatility_pct:.2f}%")
    tbl.add_row("Trades", str(report.trades_executed))
    tbl.add_row("Win Rate", f"{report.win_rate:.1f}% ({report.winning_trades}W / {report.losing_trades}L)")
    tbl.add_row("Streaks", f"{report.max_consecutive_wins}W / {report.max_consecutive_losses}L")
    tbl.add_row("Avg Win / Loss", f"{report.avg_win:,.2f} / {report.avg_loss:,.2f}")
    tbl.add_row("Total Fees", f"{report.total_fees:,.2f}")
    console.print(tbl)

    if report.trades and last_trades > 0:
        trades = Table(title=f"Last {min(last_trades, len(report.trades))} trades")
        for col in ("Day", "Side", "Qty", "Price", "Cash", "P&L"):
            trades.add_column(col, justify="right")
        for t in report.trades[-last_trades:]:
            pnl = "" if t.pnl is None else f"[{'green' if t.pnl > 0 else 'red'}]{t.pnl:,.2f}[/]"
            trades.add_row(str(t.tick), t.side.value, f"{t.qty:g}", f"{t.price:,.2f}", f"{t.balance:,.2f}", pnl)
        console.print(trades)

    months = Table(title="Monthly returns")
    months.add_column("Bucket")
    months.add_column("Return", justify="right")
    months.add_column("Value", justify="right")
    for m in report.monthly_returns:
        c = "green" if m.return_pct >= 0 else "red"
        months.add_row(m.label, f"[{c}]{m.return_pct:.2f}%[/]", f"{m.portfolio_value:,.2f}")
    console.print(months)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        prices = load_prices_from_csv(args.csv, column=args.column) if args.csv else None
        report = run_backtest(
            prices,
            strategy=resolve_strategy(args.strategy),
            initial_balance=args.initial_balance,
            fee_pct=args.fee,
            rng=default_rng(args.seed),
        )
    except (SandboxError, FileNotFoundError, ValueError) as exc:
        console.print(f"[red]ERROR: {exc}[/]")
        sys.exit(1)

    if args.json_mode:
        json.dump(report.summary(), sys.stdout, indent=2)
        sys.stdout.write("\n")
        return

    render_report(report, last_trades=args.trades)


if __name__ == "__main__":
    main()
