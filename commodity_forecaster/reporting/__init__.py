"""
commodity_forecaster.reporting — terminal formatting of backtest results.

Modules:
  formatters — ASCII tables for Typer CLI commands.
"""
