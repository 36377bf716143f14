"""Scrollgen HTTP API."""
