# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for Ease tests."""

import logging

import pytest

from ease import Ease


@pytest.fixture(autouse=True)
def reset_ease_logging():
    """Undo setup_logging() so caplog sees ease records in every test."""
    yield
    logger = logging.getLogger("ease")
    for handler in list(logger.handlers):
        if getattr(handler, "_ease_handler", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def ease(tmp_path):
    """Engine rooted at a temporary config directory."""
    return Ease(config_dirname=tmp_path)


@pytest.fixture
def calls():
    """Ordered record of handler invocations."""
    return []
