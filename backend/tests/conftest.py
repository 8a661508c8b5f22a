"""Pytest configuration and fixtures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    """Capture pricefeed debug logs so failures show the scheduler trace."""
    caplog.set_level(logging.DEBUG, logger="pricefeed")
