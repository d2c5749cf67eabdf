"""Tests for timing utilities."""

import pytest

from pydecomp.core.compute.timing import Timer, timed


class TestTimer:

    def test_sections_in_result(self):
        timer = Timer()
        timer.start()
        with timer.section('bidiagonalize'):
            pass
        with timer.section('sweeps'):
            pass
        timer.stop()
        result = timer.result()
        assert set(result) == {'total_seconds', 'bidiagonalize', 'sweeps'}
        assert result['total_seconds'] >= 0.0

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        for _ in range(3):
            with timer.section('sweeps'):
                pass
        timer.stop()
        assert list(timer.result()) == ['total_seconds', 'sweeps']

    def test_section_recorded_on_exception(self):
        timer = Timer()
        timer.start()
        with pytest.raises(ValueError):
            with timer.section('failing'):
                raise ValueError("boom")
        timer.stop()
        assert 'failing' in timer.result()

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError, match="before start"):
            Timer().stop()

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError, match="before stop"):
            timer.result()


class TestTimed:

    def test_context_manager(self):
        with timed() as timer:
            pass
        assert timer.result()['total_seconds'] >= 0.0
