"""Core runtime support for Mimir: configuration loading and provider construction."""
