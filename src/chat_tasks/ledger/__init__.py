"""Durable, idempotent task ledger.

The ledger is the only writer of the task store and the single
synchronization point between concurrent requests for the same key:
``begin_processing`` is a compare-and-swap on a durable row, so two
processes sharing one SQLite file cannot both run the same task.
"""
