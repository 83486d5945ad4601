"""User-facing entry points for Mimir."""
