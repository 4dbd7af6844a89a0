"""Async controller and cron scheduler for eQ-3 MAX! Cube heating gateways."""

__version__ = "0.3.0"
