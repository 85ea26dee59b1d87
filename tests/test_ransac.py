"""Tests for the RANSAC engine."""

import logging
import math
import sys
import time

import pytest
import numpy as np

from consensus.engine.ransac import Ransac, adaptive_iteration_bound
from consensus.errors import (
    ConfigurationError,
    DegenerateDataError,
    InsufficientDataError,
    NoConsensusError,
    Status,
)
from consensus.problems import LineFittingProblem, PointCloudAlignmentProblem
from consensus.problems.base import SampleConsensusProblem
from consensus.testing import (
    TranslationProblem,
    make_line_points,
    make_rigid_scene,
    make_translation_scene,
)


class ScriptedProblem(SampleConsensusProblem):
    """Problem whose hypotheses and residuals are fixed up front."""

    def __init__(self, n, k=2, hypotheses=None, residuals=None):
        self.n = n
        self.k = k
        self.hypotheses = hypotheses if hypotheses is not None else [np.zeros(1)]
        self.residuals = residuals or {}
        self.generate_calls = 0
        self.refine_calls = []

    def minimal_sample_size(self):
        return self.k

    def correspondence_count(self):
        return self.n

    def generate_hypotheses(self, sample):
        self.generate_calls += 1
        return list(self.hypotheses)

    def compute_residuals(self, hypothesis):
        return np.asarray(self.residuals[float(np.ravel(hypothesis)[0])], dtype=float)

    def refine(self, hypothesis, inliers):
        self.refine_calls.append(np.asarray(inliers).copy())
        return hypothesis


class RecordingRansac(Ransac):
    """Ransac that keeps the best size and bound after every draw."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.best_sizes = []
        self.bounds = []

    def _record(self, state, degenerate, candidate, n, k):
        super()._record(state, degenerate, candidate, n, k)
        if not degenerate:
            self.best_sizes.append(state.best_consensus_size)
            self.bounds.append(state.max_iterations)


class TestAdaptiveIterationBound:
    """Test the adaptive stopping bound."""

    @pytest.mark.parametrize("w,k,p", [
        (0.5, 4, 0.99),
        (0.7, 5, 0.99),
        (0.3, 3, 0.95),
        (0.9, 8, 0.999),
    ])
    def test_matches_formula(self, w, k, p):
        """Bound equals ceil(log(1-p) / log(1-w^k))."""
        expected = math.ceil(math.log(1 - p) / math.log(1 - w ** k))
        assert adaptive_iteration_bound(w, k, p) == expected

    def test_known_value(self):
        """Half inliers, 4-point samples, 99% confidence needs 72 iterations."""
        assert adaptive_iteration_bound(0.5, 4, 0.99) == 72

    def test_perfect_ratio(self):
        """All inliers needs a single iteration."""
        assert adaptive_iteration_bound(1.0, 5, 0.99) == 1

    def test_zero_ratio_is_unbounded(self):
        """No inliers gives no usable bound."""
        assert adaptive_iteration_bound(0.0, 3, 0.99) == sys.maxsize

    def test_invalid_probability(self):
        """Probability must lie strictly between 0 and 1."""
        with pytest.raises(ValueError):
            adaptive_iteration_bound(0.5, 4, 1.0)
        with pytest.raises(ValueError):
            adaptive_iteration_bound(0.5, 4, 0.0)


class TestRansacInitialization:
    """Test engine construction."""

    def test_ransac_initialization(self):
        """Test default parameters."""
        ransac = Ransac(ScriptedProblem(10))
        assert ransac.threshold == 1.0
        assert ransac.probability == 0.99
        assert ransac.max_iterations == 1000
        assert ransac.max_degenerate_samples == 50
        assert ransac.time_budget is None

    def test_ransac_custom_params(self):
        """Test custom parameters."""
        ransac = Ransac(ScriptedProblem(10), threshold=5.0, max_iterations=500,
                        probability=0.95, max_degenerate_samples=7)
        assert ransac.threshold == 5.0
        assert ransac.max_iterations == 500
        assert ransac.probability == 0.95
        assert ransac.max_degenerate_samples == 7

    @pytest.mark.parametrize("kwargs", [
        {"threshold": 0.0},
        {"threshold": -1.0},
        {"probability": 1.0},
        {"max_iterations": 0},
        {"max_degenerate_samples": 0},
        {"time_budget": -1.0},
    ])
    def test_invalid_params(self, kwargs):
        """Invalid parameters are rejected at construction."""
        with pytest.raises(ConfigurationError):
            Ransac(ScriptedProblem(10), **kwargs)


class TestRansacRuns:
    """Test complete runs on synthetic data."""

    def test_ransac_line_fitting(self):
        """Test RANSAC with line fitting."""
        rng = np.random.default_rng(42)
        scene = make_line_points(50, rng, noise=0.5)
        scene.data_a[0, 1] = 100
        scene.data_a[10, 1] = -50

        ransac = Ransac(LineFittingProblem(scene.data_a), threshold=2.0, max_iterations=100, seed=0)
        result = ransac.run()

        assert result.status == Status.OK
        assert result.num_inliers >= 45
        assert 0 not in result.consensus_set
        assert 10 not in result.consensus_set

    def test_zero_noise_first_iteration(self):
        """A perfect scene is fully explained by the very first sample."""
        rng = np.random.default_rng(3)
        scene = make_rigid_scene(20, rng)
        problem = PointCloudAlignmentProblem(scene.data_a, scene.data_b)

        result = Ransac(problem, threshold=1e-6, seed=1).run()

        assert result.status == Status.OK
        assert result.num_inliers == 20
        assert result.iterations_used == 1
        assert np.allclose(result.hypothesis, scene.model, atol=1e-8)

    def test_controlled_outliers(self):
        """With 30% outliers, >=95% of true inliers are recovered in >=95% of runs."""
        rng = np.random.default_rng(2024)
        scene = make_translation_scene(100, rng, outlier_ratio=0.3, noise=0.01)
        problem = TranslationProblem(scene.data_a, scene.data_b, sample_size=5)
        truth = set(scene.inliers.tolist())

        successes = 0
        runs = 100
        for seed in range(runs):
            result = Ransac(problem, threshold=0.06, probability=0.99,
                            max_iterations=1000, seed=seed).run()
            recovered = truth & set(result.consensus_set.tolist())
            if result.ok and len(recovered) >= 0.95 * len(truth):
                successes += 1

        assert successes >= 0.95 * runs

    def test_terminates_within_max_iterations(self):
        """Runs never exceed the configured iteration budget."""
        rng = np.random.default_rng(5)
        scene = make_translation_scene(60, rng, outlier_ratio=0.8, noise=0.01)
        problem = TranslationProblem(scene.data_a, scene.data_b, sample_size=4)

        for seed in range(5):
            result = Ransac(problem, threshold=0.05, max_iterations=40, seed=seed).run()
            assert result.iterations_used <= 40

    def test_best_consensus_is_monotonic(self):
        """Best consensus size never decreases across iterations."""
        rng = np.random.default_rng(11)
        scene = make_translation_scene(80, rng, outlier_ratio=0.5, noise=0.01)
        ransac = RecordingRansac(TranslationProblem(scene.data_a, scene.data_b, sample_size=3),
                                 threshold=0.06, seed=4)
        result = ransac.run()

        history = ransac.best_sizes
        assert len(history) == result.iterations_used
        assert all(a <= b for a, b in zip(history, history[1:]))

    def test_bound_is_never_raised(self):
        """The adaptive bound only ever lowers max_iterations."""
        rng = np.random.default_rng(12)
        scene = make_translation_scene(80, rng, outlier_ratio=0.4, noise=0.01)
        ransac = RecordingRansac(TranslationProblem(scene.data_a, scene.data_b, sample_size=3),
                                 threshold=0.06, max_iterations=300, seed=8)
        result = ransac.run()

        bounds = ransac.bounds
        assert all(b <= 300 for b in bounds)
        assert all(a >= b for a, b in zip(bounds, bounds[1:]))
        assert result.iterations_used <= bounds[-1]

    def test_run_leaves_no_state_on_engine(self):
        """Iteration state lives only for the duration of a run."""
        problem = ScriptedProblem(10, residuals={0.0: np.zeros(10)})
        ransac = Ransac(problem)
        before = set(vars(ransac))
        ransac.run()
        assert set(vars(ransac)) == before

    def test_same_seed_is_reproducible(self):
        """Two engines with the same seed give identical runs."""
        rng = np.random.default_rng(13)
        scene = make_translation_scene(50, rng, outlier_ratio=0.4, noise=0.01)
        problem = TranslationProblem(scene.data_a, scene.data_b, sample_size=3)

        first = Ransac(problem, threshold=0.06, seed=99).run()
        second = Ransac(problem, threshold=0.06, seed=99).run()

        assert first.iterations_used == second.iterations_used
        assert np.array_equal(first.consensus_set, second.consensus_set)


class TestRansacFailures:
    """Test error statuses."""

    def test_ransac_insufficient_data(self):
        """Too few correspondences fails before any sampling."""
        problem = ScriptedProblem(2, k=5)
        result = Ransac(problem).run()

        assert result.status == Status.INSUFFICIENT_DATA
        assert result.hypothesis is None
        assert result.num_inliers == 0
        assert result.iterations_used == 0
        assert problem.generate_calls == 0

    def test_estimate_raises_insufficient_data(self):
        """estimate() surfaces the failure as an exception."""
        with pytest.raises(InsufficientDataError):
            Ransac(ScriptedProblem(2, k=5)).estimate()

    def test_degenerate_data(self):
        """Consecutive degenerate samples beyond the bound abort the run."""
        problem = ScriptedProblem(10, hypotheses=[])
        result = Ransac(problem, max_degenerate_samples=12).run()

        assert result.status == Status.DEGENERATE_DATA
        assert result.iterations_used == 0
        assert problem.generate_calls == 12
        assert result.degenerate_samples == 12
        with pytest.raises(DegenerateDataError):
            result.raise_for_status()

    def test_degenerate_samples_are_reported(self, caplog):
        """Skipped degenerate draws show up on a successful result and in the log."""

        class WarmupProblem(ScriptedProblem):
            def generate_hypotheses(self, sample):
                self.generate_calls += 1
                if self.generate_calls <= 3:
                    return []
                return list(self.hypotheses)

        problem = WarmupProblem(10, residuals={0.0: np.zeros(10)})
        with caplog.at_level(logging.INFO, logger="consensus.engine.ransac"):
            result = Ransac(problem, max_degenerate_samples=5).run()

        assert result.status == Status.OK
        assert result.iterations_used == 1
        assert result.degenerate_samples == 3
        assert any("3 degenerate samples skipped" in r.getMessage() for r in caplog.records)

    def test_solver_errors_count_as_degenerate(self):
        """LinAlgError from the solver is treated as a degenerate sample."""

        class FailingProblem(ScriptedProblem):
            def generate_hypotheses(self, sample):
                self.generate_calls += 1
                raise np.linalg.LinAlgError("singular")

        problem = FailingProblem(10)
        result = Ransac(problem, max_degenerate_samples=5).run()
        assert result.status == Status.DEGENERATE_DATA
        assert problem.generate_calls == 5

    def test_no_consensus(self):
        """A budget spent without any inlier reports NO_CONSENSUS."""
        problem = ScriptedProblem(10, residuals={0.0: np.full(10, 5.0)})
        result = Ransac(problem, threshold=1.0, max_iterations=25).run()

        assert result.status == Status.NO_CONSENSUS
        assert result.hypothesis is None
        assert result.iterations_used == 25
        with pytest.raises(NoConsensusError):
            result.raise_for_status()

    def test_non_finite_hypotheses_are_discarded(self):
        """NaN hypotheses score as zero consensus without aborting."""
        residuals = {1.0: np.zeros(10)}
        problem = ScriptedProblem(10, hypotheses=[np.array([np.nan]), np.array([1.0])],
                                  residuals=residuals)
        result = Ransac(problem).run()

        assert result.status == Status.OK
        assert result.hypothesis[0] == 1.0
        assert result.num_inliers == 10

    def test_only_non_finite_hypotheses(self):
        """A problem that only produces NaN hypotheses finds nothing."""
        problem = ScriptedProblem(10, hypotheses=[np.array([np.inf])])
        result = Ransac(problem, max_iterations=10).run()

        assert result.status == Status.NO_CONSENSUS
        assert result.iterations_used == 10


class TestRansacDetails:
    """Test tie-breaking, refinement and soft stops."""

    def test_tie_break_prefers_smaller_residual_sum(self):
        """Equal consensus sizes are decided by summed residual."""
        residuals = {
            1.0: np.array([0.5] * 8 + [9.0, 9.0]),
            2.0: np.array([0.1] * 8 + [9.0, 9.0]),
        }
        problem = ScriptedProblem(10, hypotheses=[np.array([1.0]), np.array([2.0])],
                                  residuals=residuals)
        result = Ransac(problem, max_iterations=3, refine=False).run()

        assert result.hypothesis[0] == 2.0
        assert result.num_inliers == 8

    def test_larger_consensus_wins(self):
        """A larger consensus beats a tighter but smaller one."""
        residuals = {
            1.0: np.array([0.9] * 9 + [9.0]),
            2.0: np.array([0.0] * 5 + [9.0] * 5),
        }
        problem = ScriptedProblem(10, hypotheses=[np.array([2.0]), np.array([1.0])],
                                  residuals=residuals)
        result = Ransac(problem, max_iterations=3).run()
        assert result.hypothesis[0] == 1.0

    def test_residual_equal_to_threshold_is_outlier(self):
        """Only residuals strictly below the cutoff count."""
        residuals = {0.0: np.array([1.0] * 5 + [0.5] * 5)}
        problem = ScriptedProblem(10, residuals=residuals)
        result = Ransac(problem, threshold=1.0, max_iterations=2).run()
        assert list(result.consensus_set) == [5, 6, 7, 8, 9]

    def test_refine_uses_consensus_set(self):
        """The winner is refined once over its consensus set."""
        residuals = {0.0: np.array([0.0] * 6 + [3.0] * 4)}
        problem = ScriptedProblem(10, residuals=residuals)
        Ransac(problem, max_iterations=5).run()

        assert len(problem.refine_calls) == 1
        assert list(problem.refine_calls[0]) == [0, 1, 2, 3, 4, 5]

    def test_refine_can_be_disabled(self):
        """refine=False skips the polishing pass."""
        problem = ScriptedProblem(10, residuals={0.0: np.zeros(10)})
        Ransac(problem, refine=False).run()
        assert problem.refine_calls == []

    def test_refine_improves_noisy_line(self):
        """Refinement over inliers reduces the residual of a noisy line."""
        rng = np.random.default_rng(7)
        scene = make_line_points(200, rng, outlier_ratio=0.2, noise=0.2)
        problem = LineFittingProblem(scene.data_a)

        raw = Ransac(problem, threshold=1.0, seed=1, refine=False).run()
        polished = Ransac(problem, threshold=1.0, seed=1, refine=True).run()

        raw_error = np.mean(raw.residuals[scene.inliers])
        polished_error = np.mean(polished.residuals[scene.inliers])
        assert polished_error <= raw_error + 1e-9

    def test_time_budget_is_a_soft_stop(self):
        """Hitting the wall-clock budget still returns the best hypothesis."""

        class SlowProblem(ScriptedProblem):
            def compute_residuals(self, hypothesis):
                time.sleep(0.005)
                return np.array([0.0] * 5 + [9.0] * 5)

        result = Ransac(SlowProblem(10), max_iterations=100000, time_budget=0.05,
                        probability=0.999999999).run()

        assert result.status == Status.OK
        assert result.num_inliers == 5
        assert result.iterations_used < 100000

    def test_residual_shape_mismatch_is_an_error(self):
        """A problem returning the wrong residual length is a programming error."""
        problem = ScriptedProblem(10, residuals={0.0: np.zeros(3)})
        with pytest.raises(ValueError):
            Ransac(problem).run()
