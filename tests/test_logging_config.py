import logging

import pytest

from concierge.logging_config import configure_logging, get_logger, resolve_level


@pytest.mark.parametrize("value, expected", [
    ("debug", logging.DEBUG),
    (" WARNING ", logging.WARNING),
    ("10", 10),
    (logging.ERROR, logging.ERROR),
    (None, logging.INFO),
    ("", logging.INFO),
    ("chatty", logging.INFO),
])
def test_resolve_level(value, expected):
    assert resolve_level(value) == expected


def test_outside_modules_nest_under_concierge():
    assert get_logger("service.api").name == "concierge.service.api"
    assert get_logger("app").name == "concierge.app"
    assert get_logger("concierge.engine").name == "concierge.engine"
    assert get_logger("concierge").name == "concierge"


def test_single_handler_and_explicit_level():
    root = logging.getLogger("concierge")
    previous = root.level
    try:
        configure_logging()
        configure_logging()
        assert len(root.handlers) == 1
        assert root.propagate is False

        configure_logging("DEBUG")
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)
