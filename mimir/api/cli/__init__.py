"""Mimir command-line interface."""
