"""Tests for the shared cancellation token."""

import pytest

from tablepurger.contracts import PurgeCancelledError
from tablepurger.core.cancellation import CancellationToken


class TestCancellationToken:
    def test_initially_not_cancelled(self) -> None:
        token = CancellationToken()

        assert token.is_cancelled is False
        assert token.reason is None
        token.raise_if_cancelled()

    def test_cancel_raises(self) -> None:
        token = CancellationToken()
        token.cancel("worker-3 failed")

        with pytest.raises(PurgeCancelledError, match="worker-3 failed"):
            token.raise_if_cancelled()

    def test_first_reason_kept(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")

        assert token.reason == "first"
