"""Tests for invoice/payout numbering and collision retries."""

import logging

import pytest

from commission_engine.errors import NumberCollision, NumberingError
from commission_engine.numbering import NumberGenerator, issue_with_retry


class TestNumberGenerator:

    def test_format(self, clock, sequence_rng):
        generator = NumberGenerator("INV", clock=clock, rng=sequence_rng(42))

        assert generator.next_number() == "INV-20250615-00042"

    def test_default_rng_stays_in_range(self, clock):
        number = NumberGenerator("PAY", clock=clock).next_number()

        prefix, stamp, suffix = number.split("-")
        assert (prefix, stamp) == ("PAY", "20250615")
        assert len(suffix) == 5 and suffix.isdigit()


class TestIssueWithRetry:

    def test_retries_until_accepted(self, clock, sequence_rng, caplog):
        taken = {"INV-20250615-00001"}

        def write(number):
            if number in taken:
                raise NumberCollision(number)
            return number

        generator = NumberGenerator("INV", clock=clock, rng=sequence_rng(1, 1, 2))
        with caplog.at_level(logging.WARNING, logger="commission_engine.numbering"):
            assert issue_with_retry(generator, write) == "INV-20250615-00002"

        assert len([r for r in caplog.records if "collision" in r.getMessage()]) == 2

    def test_exhausted_attempts(self, clock, sequence_rng):
        def write(number):
            raise NumberCollision(number)

        generator = NumberGenerator("PAY", clock=clock, rng=sequence_rng(7))
        with pytest.raises(NumberingError):
            issue_with_retry(generator, write, attempts=3)

    def test_other_errors_are_not_retried(self, clock, sequence_rng):
        calls = []

        def write(number):
            calls.append(number)
            raise ValueError("store refused")

        with pytest.raises(ValueError, match="store refused"):
            issue_with_retry(NumberGenerator("INV", clock=clock, rng=sequence_rng(3)), write)
        assert len(calls) == 1
