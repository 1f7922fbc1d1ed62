import logging
import math

import numpy as np
import pytest

from conjgrad import (
    Configuration,
    ConjugateGradient,
    FunctionObjective,
    InvalidConfiguration,
    InvalidDimension,
    LineSearchFailure,
    StoppingReason,
    TrainingState,
)
from conjgrad.functions import grad_shifted_quadratic, grad_sphere, shifted_quadratic, sphere
from conjgrad.results import histories_equal

from conftest import FixedStepMinimizer, ScriptedObjective, Ticker


def quiet(**overrides):
    return Configuration(display=False, **overrides)


class FailingOnSecondCall:
    def __init__(self, objective):
        self.inner = FixedStepMinimizer(objective, step=0.1)
        self.calls = 0

    def minimize(self, parameters, direction, initial_step, performance=None, gradient=None):
        self.calls += 1
        if self.calls == 2:
            raise LineSearchFailure("no bracket")
        return self.inner.minimize(parameters, direction, initial_step)


def test_zero_iterations_budget(sphere_objective):
    trainer = ConjugateGradient(sphere_objective, quiet(maximum_iterations_number=0))
    results = trainer.perform_training([1.0, 1.0])

    assert results.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert results.iterations_number == 0
    assert len(results.performance_history) == 1
    assert math.isnan(results.final_parameters_increment_norm)
    assert math.isnan(results.final_performance_increase)
    assert results.final_performance == pytest.approx(2.0)


def test_zero_gradient_stops_at_first_iteration():
    objective = FunctionObjective(func=lambda x: 5.0, grad=lambda x: np.zeros_like(x))
    results = ConjugateGradient(objective, quiet()).perform_training([3.0, -1.0])

    assert results.stopping_reason is StoppingReason.GRADIENT_NORM_GOAL
    assert results.iterations_number == 0
    np.testing.assert_array_equal(results.final_training_direction, [0.0, 0.0])
    np.testing.assert_array_equal(results.final_parameters, [3.0, -1.0])


def test_performance_goal_has_priority_over_gradient_goal(sphere_objective, fixed_step):
    # x_{k+1} = 0.8 x_k: f = 1, 0.64, 0.4096, 0.262144 and ||g|| = 2, 1.6, 1.28, 1.024
    cfg = quiet(performance_goal=0.3, gradient_norm_goal=1.1)
    trainer = ConjugateGradient(sphere_objective, cfg, training_rate_algorithm=fixed_step)
    results = trainer.perform_training([1.0, 0.0])

    assert results.stopping_reason is StoppingReason.PERFORMANCE_GOAL
    assert results.iterations_number == 3
    assert results.final_performance == pytest.approx(0.262144)
    np.testing.assert_allclose(results.final_parameters, [0.512, 0.0])
    assert fixed_step.calls == [0.01, 0.1, 0.1]


def test_error_threshold_terminates_with_numerical_failure():
    objective = ScriptedObjective(
        performances=[3.0, 2.0, 1.0],
        gradients=[[0.5, 0.0], [0.4, 0.0], [5.0, 0.0]],
    )
    trainer = ConjugateGradient(
        objective,
        quiet(error_gradient_norm=1.0),
        training_rate_algorithm=FixedStepMinimizer(objective),
    )
    results = trainer.perform_training([1.0, 0.0])

    assert results.stopping_reason is StoppingReason.NUMERICAL_FAILURE
    assert results.failed
    assert results.iterations_number == 2
    assert results.final_gradient_norm == pytest.approx(5.0)
    assert len(results.performance_history) == 3


def test_non_finite_performance_is_a_numerical_failure():
    objective = ScriptedObjective(performances=[float("nan")], gradients=[[1.0]])
    results = ConjugateGradient(objective, quiet()).perform_training([1.0])
    assert results.stopping_reason is StoppingReason.NUMERICAL_FAILURE
    assert results.iterations_number == 0


def test_early_stopping_on_selection(sphere_objective, fixed_step):
    trainer = ConjugateGradient(
        sphere_objective,
        quiet(maximum_selection_performance_decreases=3),
        training_rate_algorithm=fixed_step,
        selection=lambda x: -sphere(x),
    )
    results = trainer.perform_training([1.0, 1.0])

    assert results.stopping_reason is StoppingReason.EARLY_STOPPING_ON_SELECTION
    assert results.iterations_number == 3
    assert results.final_selection_failures == 3
    assert results.final_selection_performance == pytest.approx(-2.0 * 0.8 ** 6)


def test_selection_counter_resets_when_selection_improves(sphere_objective, fixed_step):
    trainer = ConjugateGradient(
        sphere_objective,
        quiet(maximum_selection_performance_decreases=1, maximum_iterations_number=6),
        training_rate_algorithm=fixed_step,
        selection=sphere,
    )
    results = trainer.perform_training([1.0, 1.0])
    assert results.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert results.iterations_number == 6


def test_runs_are_reproducible_with_a_fixed_clock():
    cfg = quiet(maximum_iterations_number=20).with_reserve_all_history(True)

    def run():
        objective = FunctionObjective(func=shifted_quadratic, grad=grad_shifted_quadratic)
        trainer = ConjugateGradient(objective, cfg, clock=lambda: 0.0)
        return trainer.perform_training(np.zeros(3))

    first, second = run(), run()
    assert first.stopping_reason is second.stopping_reason
    assert first.iterations_number == second.iterations_number
    assert histories_equal(first.history, second.history)


def test_history_has_one_row_per_iteration():
    objective = FunctionObjective(func=shifted_quadratic, grad=grad_shifted_quadratic)
    cfg = quiet(maximum_iterations_number=50).with_reserve_all_history(True)
    results = ConjugateGradient(objective, cfg).perform_training(np.zeros(3))

    rows = results.iterations_number + 1
    for channel, values in results.history.items():
        assert len(values) == rows, channel
    assert results.parameters_history.shape == (rows, 3)
    assert results.training_rate_history[0] == 0.0
    np.testing.assert_array_equal(results.parameters_history[-1], results.final_parameters)


def test_maximum_time(sphere_objective, fixed_step):
    trainer = ConjugateGradient(
        sphere_objective,
        quiet(maximum_time=3.5),
        training_rate_algorithm=fixed_step,
        clock=Ticker(dt=1.0),
    )
    results = trainer.perform_training([1.0, 1.0])

    assert results.stopping_reason is StoppingReason.MAXIMUM_TIME
    assert results.iterations_number == 3
    assert results.elapsed_time == pytest.approx(4.0)


def test_line_search_failure_keeps_partial_history(sphere_objective):
    trainer = ConjugateGradient(
        sphere_objective,
        quiet(),
        training_rate_algorithm=FailingOnSecondCall(sphere_objective),
    )
    results = trainer.perform_training([1.0, 1.0])

    assert results.stopping_reason is StoppingReason.NUMERICAL_FAILURE
    assert results.iterations_number == 1
    assert len(results.performance_history) == 2


def test_training_rate_error_threshold(sphere_objective, fixed_step):
    trainer = ConjugateGradient(
        sphere_objective, quiet(error_training_rate=0.05), training_rate_algorithm=fixed_step
    )
    results = trainer.perform_training([1.0, 1.0])
    assert results.stopping_reason is StoppingReason.NUMERICAL_FAILURE
    assert results.iterations_number == 0


@pytest.mark.parametrize("method", ["PR", "FR"])
def test_converges_on_quadratic(method):
    objective = FunctionObjective(func=shifted_quadratic, grad=grad_shifted_quadratic)
    cfg = quiet(
        training_direction_method=method,
        gradient_norm_goal=1e-5,
        maximum_iterations_number=200,
    )
    results = ConjugateGradient(objective, cfg).perform_training(np.zeros(4))

    assert results.stopping_reason in (
        StoppingReason.GRADIENT_NORM_GOAL,
        StoppingReason.MINIMUM_PARAMETERS_INCREMENT,
        StoppingReason.MINIMUM_PERFORMANCE_INCREASE,
    )
    assert results.final_performance < 1e-6
    np.testing.assert_allclose(results.final_parameters, np.ones(4), atol=1e-3)


def test_non_descent_direction_counts_a_restart():
    # FR: beta = 1, d_1 = -g_1 + d_0 = 0 so the descent direction is used instead
    objective = ScriptedObjective(
        performances=[3.0, 2.0],
        gradients=[[1.0, 0.0], [-1.0, 0.0]],
    )
    trainer = ConjugateGradient(
        objective,
        quiet(training_direction_method="FR", maximum_iterations_number=1),
        training_rate_algorithm=FixedStepMinimizer(objective),
    )
    results = trainer.perform_training([1.0, 0.0])

    assert results.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert results.restarts_number == 1
    np.testing.assert_array_equal(results.final_training_direction, [1.0, 0.0])


def test_callback_and_checkpoint(sphere_objective, fixed_step):
    seen, saved = [], []
    trainer = ConjugateGradient(
        sphere_objective,
        quiet(maximum_iterations_number=5, save_period=2),
        training_rate_algorithm=fixed_step,
        callback=lambda state: seen.append(state.index),
        checkpoint=lambda state: saved.append(state.index),
    )
    trainer.perform_training([1.0, 1.0])

    assert seen == [0, 1, 2, 3, 4, 5]
    assert saved == [2, 4]


def test_invalid_initial_parameters(sphere_objective):
    trainer = ConjugateGradient(sphere_objective, quiet())
    with pytest.raises(InvalidDimension):
        trainer.perform_training([])
    with pytest.raises(InvalidDimension):
        trainer.perform_training(np.zeros((2, 2)))


def test_gradient_dimension_mismatch():
    objective = FunctionObjective(func=sphere, grad=lambda x: np.zeros(3))
    with pytest.raises(InvalidDimension):
        ConjugateGradient(objective, quiet()).perform_training([1.0, 1.0])


def test_invalid_construction(sphere_objective):
    with pytest.raises(InvalidConfiguration):
        ConjugateGradient(None)
    with pytest.raises(InvalidConfiguration):
        ConjugateGradient(object())
    with pytest.raises(InvalidConfiguration):
        ConjugateGradient(sphere_objective, {"maximum_iterations_number": 3})


def test_warning_threshold_is_logged(sphere_objective, caplog):
    trainer = ConjugateGradient(
        sphere_objective, quiet(warning_gradient_norm=1.0, maximum_iterations_number=0)
    )
    with caplog.at_level(logging.WARNING, logger="conjgrad.engine"):
        results = trainer.perform_training([1.0, 1.0])

    assert results.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert "gradient norm" in caplog.text


def test_progress_is_logged_when_displayed(sphere_objective, fixed_step, caplog):
    cfg = Configuration(display=True, display_period=1, maximum_iterations_number=2)
    trainer = ConjugateGradient(sphere_objective, cfg, training_rate_algorithm=fixed_step)
    with caplog.at_level(logging.INFO, logger="conjgrad.engine"):
        trainer.perform_training([1.0, 1.0])

    messages = [record.getMessage() for record in caplog.records]
    assert any(m.startswith("Iteration 0:") for m in messages)
    assert any(m.startswith("Iteration 1:") for m in messages)
    assert any("MaximumIterationsReached" in m for m in messages)


def test_training_state(sphere_objective):
    trainer = ConjugateGradient(sphere_objective, quiet(maximum_iterations_number=1))
    assert trainer.state is TrainingState.INITIALIZING
    trainer.perform_training([1.0, 1.0])
    assert trainer.state is TrainingState.TERMINATED
    assert "method=PR" in repr(trainer)


def test_tuple_output_from_custom_minimizer(sphere_objective):
    class HalfStep:
        def minimize(self, parameters, direction, initial_step, performance=None, gradient=None):
            new = parameters + 0.5 * direction
            return new, sphere(new), 0.5

    results = ConjugateGradient(
        sphere_objective, quiet(), training_rate_algorithm=HalfStep()
    ).perform_training([1.0, -1.0])

    # exact minimiser of the sphere along -g
    assert results.iterations_number == 1
    assert results.stopping_reason is StoppingReason.GRADIENT_NORM_GOAL
    assert results.final_training_rate == 0.5
