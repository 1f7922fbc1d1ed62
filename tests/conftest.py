import numpy as np
import pytest

from conjgrad.functions import grad_sphere, sphere
from conjgrad.objective import FunctionObjective
from conjgrad.training_rate import DirectionalPoint


class FixedStepMinimizer:
    """Line search stand-in: always steps `step` along the direction."""

    def __init__(self, objective, step=0.1):
        self.objective = objective
        self.step = step
        self.calls = []

    def minimize(self, parameters, direction, initial_step, performance=None, gradient=None):
        self.calls.append(initial_step)
        new_parameters = np.asarray(parameters) + self.step * np.asarray(direction)
        return DirectionalPoint(
            parameters=new_parameters,
            performance=self.objective.calculate_performance(new_parameters),
            training_rate=self.step,
        )


class ScriptedObjective:
    """Returns the scripted (performance, gradient) pairs, one per evaluate() call."""

    def __init__(self, performances, gradients):
        self.performances = list(performances)
        self.gradients = [np.asarray(g, dtype=float) for g in gradients]
        self.calls = 0

    def evaluate(self, parameters):
        k = min(self.calls, len(self.performances) - 1)
        self.calls += 1
        return self.performances[k], self.gradients[k].copy()

    def calculate_performance(self, parameters):
        return float(np.dot(parameters, parameters))


class Ticker:
    """Fake clock advancing by `dt` seconds on every call."""

    def __init__(self, dt=1.0):
        self.dt = dt
        self.now = -dt

    def __call__(self):
        self.now += self.dt
        return self.now


@pytest.fixture
def sphere_objective():
    return FunctionObjective(func=sphere, grad=grad_sphere)


@pytest.fixture
def fixed_step(sphere_objective):
    return FixedStepMinimizer(sphere_objective, step=0.1)
