# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

import numpy as np
from numpy.testing import assert_allclose

from mockproblem import MockProblem
from trustlm.lm import LM, LevenbergMarquardt
from trustlm.qr import PivotedQR
from trustlm.termination import Numerical, Orthogonal

RESIDUALS = [1.0, 2.0, 0.5]
JACOBIAN = np.array([[1.0, 2.0], [4.0, -2.0], [0.5, 0.1]])


def _start(config, x):
    problem = MockProblem([RESIDUALS])
    lm, residuals = LM.new(config, x, problem)
    return lm, residuals, problem


def _lls(jacobian, residuals):
    return PivotedQR(jacobian).into_least_squares_diagonal_problem(residuals)


def test_gnorm_and_gtol():
    config = LevenbergMarquardt().with_gtol(0.98)
    lm, residuals, problem = _start(config, np.zeros(2))
    assert lm.update_diag(_lls(JACOBIAN, residuals)) == Orthogonal()
    assert problem.calls == ["set_params", "residuals"]

    config = LevenbergMarquardt().with_gtol(0.96)
    lm, residuals, problem = _start(config, np.zeros(2))
    assert lm.update_diag(_lls(JACOBIAN, residuals)) != Orthogonal()
    assert problem.calls == ["set_params", "residuals"]


def test_gtol_is_monotonic():
    outcomes = []

    for gtol in [0.5, 0.9, 0.97, 0.975, 0.99, 1.0]:
        config = LevenbergMarquardt().with_gtol(gtol)
        lm, residuals, _ = _start(config, np.zeros(2))
        outcomes.append(lm.update_diag(_lls(JACOBIAN, residuals)) == Orthogonal())

    assert outcomes == [False, False, False, True, True, True]


def test_diag_init_and_second_call():
    config = LevenbergMarquardt().with_stepbound(42.0)
    lm, residuals, problem = _start(config, [1.5, 10.0])

    assert lm.update_diag(_lls(JACOBIAN, residuals)) is None
    assert problem.calls == ["set_params", "residuals"]
    # the column norms of J
    assert_allclose(lm.diag, [4.153311931459037, 2.8301943396169813])
    # ||D * x||
    assert_allclose(lm.xnorm, 28.979518629542486)
    assert lm.delta == lm.xnorm * 42.0
    assert not lm.first_call

    jacobian = JACOBIAN.copy()
    jacobian[0, 0] = 100.0
    jacobian[0, 1] = 0.0

    lm.xnorm = 123.0
    lm.delta = 7.25
    assert lm.update_diag(_lls(jacobian, residuals)) is None
    assert problem.calls == ["set_params", "residuals"]
    # later calls only take the maximum
    assert_allclose(lm.diag, [100.08121701897915, 2.8301943396169813])
    # and leave the radius alone
    assert lm.xnorm == 123.0
    assert lm.delta == 7.25


def test_zero_column_gets_unit_scale():
    config = LevenbergMarquardt()
    lm, residuals, _ = _start(config, [1.0, 1.0])
    jacobian = JACOBIAN.copy()
    jacobian[:, 1] = 0.0

    assert lm.update_diag(_lls(jacobian, residuals)) is None
    assert_allclose(lm.diag, [4.153311931459037, 1.0])


def test_zero_x():
    config = LevenbergMarquardt().with_stepbound(900.0)
    lm, residuals, problem = _start(config, np.zeros(2))

    assert lm.update_diag(_lls(JACOBIAN, residuals)) is None
    assert lm.xnorm == 0.0
    assert lm.delta == 900.0
    assert problem.calls == ["set_params", "residuals"]


def test_no_scale_diag():
    config = LevenbergMarquardt().with_scale_diag(False).with_stepbound(0.5)
    initial_x = np.array([1.5, 10.0])
    lm, residuals, problem = _start(config, initial_x)

    assert lm.update_diag(_lls(JACOBIAN, residuals)) is None
    assert problem.calls == ["set_params", "residuals"]
    assert_allclose(lm.diag, [1.0, 1.0])
    assert lm.xnorm == np.linalg.norm(initial_x)
    assert lm.delta == lm.xnorm * 0.5

    jacobian = JACOBIAN.copy()
    jacobian[0, 0] = 100.0
    jacobian[0, 1] = 0.0

    lm.xnorm = 123.0
    lm.delta = 0.125
    assert lm.update_diag(_lls(jacobian, residuals)) is None
    assert problem.calls == ["set_params", "residuals"]
    assert_allclose(lm.diag, [1.0, 1.0])
    assert lm.xnorm == 123.0
    assert lm.delta == 0.125


def test_nonfinite_x():
    for bad in [np.inf, np.nan]:
        config = LevenbergMarquardt()
        lm, residuals, problem = _start(config, [bad, 0.0])

        assert lm.update_diag(_lls(JACOBIAN, residuals)) == Numerical("subproblem x")
        assert problem.calls == ["set_params", "residuals"]
        assert lm.first_call
        assert_allclose(lm.diag, [1.0, 1.0])


def test_nonfinite_column_norms():
    config = LevenbergMarquardt()
    lm, residuals, problem = _start(config, [1.0, 2.0])
    lls = _lls(JACOBIAN, residuals)
    lls.column_norms[0] = np.nan

    assert lm.update_diag(lls) == Numerical("jacobian")
    assert problem.calls == ["set_params", "residuals"]
    assert lm.first_call


def test_nonfinite_jacobian():
    for bad in [np.inf, np.nan]:
        jacobian = JACOBIAN.copy()
        jacobian[0, 0] = bad
        problem = MockProblem([RESIDUALS], [jacobian])
        lm, _ = LM.new(LevenbergMarquardt(), [1.0, 2.0], problem)

        assert lm.step() == Numerical("jacobian")
        assert problem.calls == ["set_params", "residuals", "jacobian"]
        assert lm.first_call
