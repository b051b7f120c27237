"""Chat-triggered speech-to-text and translation tasks with an idempotent ledger."""

__version__ = "0.1.0"
