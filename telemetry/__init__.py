"""JSONL telemetry for status events and simulator state."""
