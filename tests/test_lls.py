# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal as Taaae
from numpy.testing import assert_allclose

from trustlm.lls import LeastSquaresDiagonalProblem
from trustlm.norms import enorm_mpfit_careful
from trustlm.qr import PivotedQR

FINFO = np.finfo(float)


def _manual_lls(r, pmut, bqt):
    r = np.array(r, dtype=float)
    return LeastSquaresDiagonalProblem(
        r,
        np.asarray(pmut, int),
        np.ones(r.shape[0]),
        np.asarray(bqt, dtype=float),
        enorm_mpfit_careful,
        FINFO,
    )


def _random_lls(m=7, n=3, seed=0):
    rs = np.random.RandomState(seed)
    jac = rs.normal(size=(m, n))
    resid = rs.normal(size=m)
    lls = PivotedQR(jac).into_least_squares_diagonal_problem(resid)
    return jac, resid, lls


def test_solve_with_diagonal_alone():
    # The very simplest case.
    lls = _manual_lls(np.eye(2), [0, 1], [3.0, 5.0])
    x = lls.solve_with_diagonal(np.asarray([0.0, 0.0]))
    Taaae(x, [3.0, 5.0])
    Taaae(lls.sdiag, [1.0, 1.0])

    # Now throw in a diagonal matrix ...
    lls = _manual_lls(np.eye(2), [0, 1], [3.0, 5.0])
    x = lls.solve_with_diagonal(np.asarray([2.0, 3.0]))
    Taaae(x, [0.6, 0.5])
    Taaae(np.abs(lls.sdiag), np.sqrt([5.0, 10.0]))

    # And a permutation. We permute J but keep the right-hand side, so the
    # diagonal must be permuted too to get the same scalings.
    lls = _manual_lls(np.eye(2), [1, 0], [3.0, 5.0])
    x = lls.solve_with_diagonal(np.asarray([3.0, 2.0]))
    Taaae(x, [0.5, 0.6])
    Taaae(np.abs(lls.sdiag), np.sqrt([5.0, 10.0]))


def test_solve_matches_normal_equations():
    jac, resid, lls = _random_lls()
    diag = np.asarray([0.5, 2.0, 1.5])

    for damping in [0.0, 0.1, 0.7, 3.0]:
        p, dxnorm = lls.solve(damping, diag)
        a = np.dot(jac.T, jac) + damping**2 * np.diag(diag**2)
        expected = np.linalg.solve(a, np.dot(jac.T, resid))
        assert_allclose(p, expected, rtol=1e-9, atol=1e-12)
        assert_allclose(dxnorm, np.linalg.norm(diag * expected), rtol=1e-9)


def test_solve_zero_diagonal_is_gauss_newton():
    jac, resid, lls = _random_lls(seed=3)
    expected = np.linalg.lstsq(jac, resid, rcond=None)[0]
    assert lls.rank == 3
    assert_allclose(lls.solve_with_zero_diagonal(), expected, rtol=1e-9)


def test_solve_negative_damping():
    _, _, lls = _random_lls()

    with pytest.raises(ValueError):
        lls.solve(-1.0, np.ones(3))


def test_rank_deficient_zero_diagonal():
    jac = np.asarray([[1.0, 0.0], [0.0, 0.0], [0.0, 0.0]])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem([2.0, 1.0, 1.0])

    assert lls.rank == 1
    p, dxnorm = lls.solve(0.0, np.ones(2))
    assert_allclose(p, [2.0, 0.0], atol=1e-12)
    assert_allclose(dxnorm, 2.0)


def test_rank_deficient_damped():
    # With damping the system is regular again.
    jac = np.asarray([[1.0, 0.0], [0.0, 0.0], [0.0, 0.0]])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem([2.0, 1.0, 1.0])
    p, _ = lls.solve(1.0, np.ones(2))
    assert_allclose(p, [1.0, 0.0])


def test_rank_deficient_proportional_columns():
    # The second column is twice the first, so R[1,1] is roundoff, not zero.
    jac = 0.1 * np.asarray([[1.0, 2.0], [2.0, 4.0], [3.0, 6.0]])
    resid = np.asarray([1.0, 0.0, 0.0])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem(resid)

    assert lls.rank == 1
    p, dxnorm = lls.solve(0.0, np.ones(2))

    # the minimum-norm least-squares solution
    expected = np.dot(np.linalg.pinv(jac), resid)
    assert_allclose(expected, [1.0 / 7, 2.0 / 7])
    assert_allclose(p, expected, rtol=1e-9)
    assert_allclose(dxnorm, np.linalg.norm(expected), rtol=1e-9)
    assert_allclose(lls.solve_with_zero_diagonal(), expected, rtol=1e-9)


def test_a_x_norm():
    jac, _, lls = _random_lls(seed=5)
    x = np.asarray([0.3, -1.2, 2.0])
    assert_allclose(lls.a_x_norm(x), np.linalg.norm(np.dot(jac, x)), rtol=1e-12)

    # not disturbed by the scratch space used by the solvers
    lls.solve(0.5, np.ones(3))
    assert_allclose(lls.a_x_norm(x), np.linalg.norm(np.dot(jac, x)), rtol=1e-12)


def test_max_a_t_b_scaled():
    jac = np.asarray([[1.0, 2.0], [4.0, -2.0], [0.5, 0.1]])
    resid = np.asarray([1.0, 2.0, 0.5])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem(resid)

    rnorm = np.linalg.norm(resid)
    cnorms = np.sqrt((jac**2).sum(axis=0))
    expected = np.max(np.abs(np.dot(jac.T, resid)) / cnorms / rnorm)

    assert_allclose(lls.max_a_t_b_scaled(rnorm), expected, rtol=1e-12)
    assert_allclose(expected, 0.972, atol=1e-3)
    assert lls.max_a_t_b_scaled(0.0) == 0.0


def test_max_a_t_b_scaled_skips_zero_columns():
    jac = np.asarray([[1.0, 0.0], [0.0, 0.0], [0.0, 0.0]])
    resid = np.asarray([0.0, 1.0, 1.0])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem(resid)
    assert lls.max_a_t_b_scaled(np.linalg.norm(resid)) == 0.0


def test_covariance_full_rank():
    jac, _, lls = _random_lls(m=9, n=4, seed=11)
    assert_allclose(lls.covariance(), np.linalg.inv(np.dot(jac.T, jac)), rtol=1e-9)


def test_covariance_rank_deficient():
    jac = np.asarray([[1.0, 0.0, 2.0], [3.0, 0.0, 1.0], [0.0, 0.0, 1.0], [1.0, 0.0, 0.0]])
    lls = PivotedQR(jac).into_least_squares_diagonal_problem(np.ones(4))
    cov = lls.covariance()

    sub = jac[:, [0, 2]]
    expected = np.linalg.inv(np.dot(sub.T, sub))

    assert_allclose(cov[1], 0.0)
    assert_allclose(cov[:, 1], 0.0)
    assert_allclose(cov[np.ix_([0, 2], [0, 2])], expected, rtol=1e-9)
