from __future__ import annotations

import pytest

from heyapm.benchmark.regression import judge


class TestJudge:
    def test_empty_history_never_regresses(self):
        verdict = judge(10.0, [], 1.1)
        assert not verdict.regression
        assert verdict.baseline is None
        assert verdict.samples == 0
        assert verdict.ratio is None

    def test_within_margin_is_not_regression(self):
        verdict = judge(100.0, [105.0, 95.0], 1.1)
        assert verdict.baseline == 105.0
        assert verdict.samples == 2
        assert not verdict.regression

    def test_below_margin_is_regression(self):
        verdict = judge(100.0, [80.0, 120.0], 1.1)
        assert verdict.regression
        assert verdict.ratio == pytest.approx(1.2)

    def test_exactly_on_margin_is_not_regression(self):
        assert not judge(100.0, [110.0], 1.1).regression

    def test_margin_of_one_flags_any_drop(self):
        assert judge(99.0, [100.0], 1.0).regression
        assert not judge(100.0, [100.0], 1.0).regression

    def test_zero_metric_against_history(self):
        verdict = judge(0.0, [10.0], 1.1)
        assert verdict.regression
        assert verdict.ratio == float("inf")

    def test_margin_below_one_rejected(self):
        with pytest.raises(ValueError):
            judge(1.0, [1.0], 0.9)
