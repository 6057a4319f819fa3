# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trustlm.problem import FuncProblem, Problem, ResidualProblem


def _line_model(pars, vals):
    vals[:] = pars[0] + pars[1] * np.arange(4.0)


def _line_jac(pars, jac):
    jac[0] = 1.0
    jac[1] = np.arange(4.0)


def test_base_class_is_abstract():
    p = Problem()

    for call in [lambda: p.set_params([1.0]), p.params, p.residuals, p.jacobian]:
        with pytest.raises(NotImplementedError):
            call()


def test_func_problem():
    p = FuncProblem(2, 4, _line_model, _line_jac)
    p.set_params([1.0, 2.0])

    assert_allclose(p.params(), [1.0, 2.0])
    assert_allclose(p.residuals(), [1.0, 3.0, 5.0, 7.0])

    jac = p.jacobian()
    assert jac.shape == (4, 2)
    assert_allclose(jac[:, 0], 1.0)
    assert_allclose(jac[:, 1], [0.0, 1.0, 2.0, 3.0])

    assert p.nfev == 1
    assert p.njev == 1


def test_func_problem_undefined():
    p = FuncProblem(1, 2, lambda pars, vals: False, lambda pars, jac: False)
    p.set_params([0.0])

    assert p.residuals() is None
    assert p.jacobian() is None


def test_func_problem_validation():
    with pytest.raises(ValueError):
        FuncProblem(-1, 4, _line_model, _line_jac)

    with pytest.raises(ValueError):
        FuncProblem(2, 0, _line_model, _line_jac)

    with pytest.raises(ValueError):
        FuncProblem(2, 4, None, _line_jac)

    with pytest.raises(ValueError):
        FuncProblem(2, 4, _line_model, "jac")

    p = FuncProblem(2, 4, _line_model, _line_jac)
    with pytest.raises(ValueError):
        p.set_params([1.0, 2.0, 3.0])


def test_residual_problem():
    yobs = np.asarray([1.0, 2.0, 4.0, 8.0])
    errinv = np.asarray([1.0, 2.0, 0.5, 1.0])
    p = ResidualProblem(2, yobs, errinv, _line_model, _line_jac)
    p.set_params([1.0, 1.0])

    assert_allclose(p.residuals(), (yobs - [1.0, 2.0, 3.0, 4.0]) * errinv)

    jac = p.jacobian()
    assert_allclose(jac[:, 0], -errinv)
    assert_allclose(jac[:, 1], -np.arange(4.0) * errinv)


def test_residual_problem_nonfinite():
    def model(pars, vals):
        vals[:] = pars[0]
        vals[1] = np.nan

    p = ResidualProblem(1, np.zeros(3), 1.0, model, lambda pars, jac: None)
    p.set_params([1.0])
    assert p.residuals() is None

    p = ResidualProblem(1, np.zeros(3), 1.0, model, lambda pars, jac: None, reckless=True)
    p.set_params([1.0])
    r = p.residuals()
    assert r is not None
    assert np.isnan(r[1])


def test_residual_problem_validation():
    with pytest.raises(ValueError):
        ResidualProblem(1, np.zeros((2, 2)), 1.0, _line_model, _line_jac)

    with pytest.raises(ValueError):
        ResidualProblem(1, np.zeros(2), [1.0, np.inf], _line_model, _line_jac)
