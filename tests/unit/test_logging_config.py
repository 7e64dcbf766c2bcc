"""Tests for logging setup."""

import logging

from carenest.config import Settings
from carenest.logging_config import setup_logging


class TestSetupLogging:
    """Test setup_logging."""

    def test_quiets_http_libraries(self):
        setup_logging(Settings(_env_file=None))

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_debug_keeps_httpx_requests(self):
        setup_logging(Settings(_env_file=None, debug=True))

        assert logging.getLogger("httpx").level == logging.INFO
