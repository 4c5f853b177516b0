"""Test bounded retry on conflicts."""

import pytest

from deploy_engine.core.errors import (
    ApplicationAlreadyExists, ApplicationConflictError, RetryLimitExceeded, ValidationError,
)
from deploy_engine.core.retry import retry_on_conflict


class Flaky:
    """Raises the given errors in order, then returns "done"."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


class TestRetryOnConflict:

    def test_first_try(self):
        fn = Flaky()
        assert retry_on_conflict(fn, sleep=lambda s: None) == "done"
        assert fn.calls == 1

    def test_retries_conflicts(self):
        fn = Flaky(ApplicationConflictError("a"), ApplicationAlreadyExists("b"))
        sleeps = []

        assert retry_on_conflict(fn, backoff_seconds=0.5, jitter=0, sleep=sleeps.append) == "done"
        assert fn.calls == 3
        assert sleeps == [0.5, 0.5]

    def test_backoff_factor(self):
        fn = Flaky(*[ApplicationConflictError("x")] * 3)
        sleeps = []

        retry_on_conflict(fn, backoff_seconds=1, factor=2, jitter=0, sleep=sleeps.append)
        assert sleeps == [1, 2, 4]

    def test_jitter_bounds(self):
        fn = Flaky(ApplicationConflictError("x"))
        sleeps = []

        retry_on_conflict(fn, backoff_seconds=1, jitter=0.1, sleep=sleeps.append)
        assert 1 <= sleeps[0] <= 1.1

    def test_limit(self):
        fn = Flaky(*[ApplicationConflictError(str(i)) for i in range(10)])
        sleeps = []

        with pytest.raises(RetryLimitExceeded) as exc_info:
            retry_on_conflict(fn, max_attempts=4, sleep=sleeps.append)

        assert fn.calls == 4
        # no sleep after the last attempt
        assert len(sleeps) == 3
        assert str(exc_info.value.__cause__) == "3"

    def test_default_attempts(self):
        fn = Flaky(*[ApplicationConflictError("x")] * 10)
        with pytest.raises(RetryLimitExceeded):
            retry_on_conflict(fn, sleep=lambda s: None)
        assert fn.calls == 5

    def test_other_errors_propagate(self):
        fn = Flaky(ValidationError("bad"))
        with pytest.raises(ValidationError):
            retry_on_conflict(fn, sleep=lambda s: None)
        assert fn.calls == 1
