"""
Ingestion boundary: turn files on disk into validated ``TimeSeries``.

Modules
-------
series_csv  Parse one series CSV (``period,value[,source]``).
registry    In-memory series registry and the file-backed repository.
"""
