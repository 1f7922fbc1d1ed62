import json
import math

import numpy as np
import pytest

from conjgrad import Configuration, ConjugateGradient, HistoryChannel, ResultsRecord, StoppingReason
from conjgrad.results import histories_equal

from conftest import FixedStepMinimizer


@pytest.fixture
def results(sphere_objective):
    cfg = Configuration(display=False, maximum_iterations_number=3).with_reserve_all_history(True)
    trainer = ConjugateGradient(
        sphere_objective, cfg, training_rate_algorithm=FixedStepMinimizer(sphere_objective)
    )
    return trainer.perform_training([1.0, 1.0])


def test_final_values(results):
    assert results.stopping_reason is StoppingReason.MAXIMUM_ITERATIONS
    assert results.iterations_number == 3
    np.testing.assert_allclose(results.final_parameters, [0.512, 0.512])
    assert results.final_parameters_norm == pytest.approx(0.512 * math.sqrt(2.0))
    assert math.isnan(results.final_selection_performance)
    assert not results.failed
    assert results.final_performance_increase == pytest.approx(0.294912)
    assert results.final_parameters_increment_norm == pytest.approx(0.128 * math.sqrt(2.0))
    assert results.final_selection_failures == 0


def test_write_final_results(results):
    rows = results.write_final_results(precision=3)
    assert len(rows) == 10
    assert dict(rows)["Selection failures"] == "0"
    assert rows[-1] == ("Stopping criterion", "MaximumIterationsReached")
    assert dict(rows)["Iterations number"] == "3"
    assert dict(rows)["Final performance"] == "0.524"


def test_to_string(results):
    text = str(results)
    assert "Stopping criterion" in text
    assert text.splitlines()[0].startswith("Final parameters norm")


def test_as_rows(results):
    rows = results.as_rows()
    assert len(rows) == 4
    assert rows[0]["iteration"] == 0
    assert rows[0]["performance"] == pytest.approx(2.0)
    assert rows[0]["training_rate"] == 0.0
    assert "parameters" not in rows[0]
    assert "gradient_norm" in rows[-1]


def test_to_dict_is_json_serialisable(results):
    data = results.to_dict()
    assert data["stopping_reason"] == "MaximumIterationsReached"
    assert data["final_selection_failures"] == 0
    assert len(data["history"]["parameters"]) == 4
    json.dumps(data)


def test_to_dataframe(results):
    pytest.importorskip("pandas")
    frame = results.to_dataframe()
    assert list(frame["iteration"]) == [0, 1, 2, 3]
    assert frame["performance"].iloc[0] == pytest.approx(2.0)


def test_history_accessors(results):
    assert results.get_history("performance") is results.performance_history
    assert results.gradient_history.shape == (4, 2)
    assert results.training_direction_history.shape == (4, 2)
    assert len(results.elapsed_time_history) == 4


def test_default_history_is_empty():
    record = ResultsRecord(
        final_parameters=np.zeros(1),
        final_parameters_norm=0.0,
        final_performance=0.0,
        final_selection_performance=math.nan,
        final_gradient=np.zeros(1),
        final_gradient_norm=0.0,
        final_training_direction=np.zeros(1),
        final_training_rate=0.0,
        elapsed_time=0.0,
        iterations_number=0,
        stopping_reason=StoppingReason.NUMERICAL_FAILURE,
    )
    assert record.failed
    assert all(values.size == 0 for values in record.history.values())
    assert record.as_rows() == []


def test_histories_equal(results):
    same = {channel: values.copy() for channel, values in results.history.items()}
    assert histories_equal(results.history, same)

    same[HistoryChannel.PERFORMANCE] = same[HistoryChannel.PERFORMANCE] + 1.0
    assert not histories_equal(results.history, same)

    del same[HistoryChannel.PERFORMANCE]
    assert not histories_equal(results.history, same)
