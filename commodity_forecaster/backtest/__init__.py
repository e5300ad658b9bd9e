"""
Trend forecasting and rolling-window backtesting for commodity price series.

Modules
-------
errors      Exception taxonomy (insufficient data, non-finite input).
ols         Ordinary-least-squares trend fit and prediction intervals.
evaluator   Expanding-window backtest producing one TestCase per step.
slices      Partition test cases by calendar year.
metrics     MAPE, interval hit rate, directional accuracy; cross-series
            weighted aggregate.
grading     Qualitative tier for an aggregate error rate.
reporter    Write summaries, test cases and a JSON manifest to disk.
"""
