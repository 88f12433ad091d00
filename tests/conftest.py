from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_logging():
    # CLI invocations bind the root handler to a stream that is closed afterwards.
    yield
    logging.disable(logging.NOTSET)
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)
