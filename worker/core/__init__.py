"""
Shared, cross-cutting code for the ingestion worker.

`core/` should contain small building blocks that multiple features use
(DB wiring, settings, the remote API client). Keep feature-specific SQL and
business logic in the corresponding feature package (e.g. `ingestion/`).
"""
