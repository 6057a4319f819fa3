# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

"""trustlm.testproblems - The MINPACK-1 lmder test functions

These are the standard nonlinear least-squares test problems of Moré,
Garbow, and Hillstrom (1981, ACM TOMS 7, 17), as exercised by the MINPACK
``lmder1`` driver, together with the results of the reference Fortran
implementation::

  from trustlm.testproblems import get_problem

  tp = get_problem("rosenbrock")
  problem, report = tp.run(factor=10)

Each problem is run from its standard starting point multiplied by a
`factor` of 1, 10 or 100. For every factor there is a known initial and
final residual norm, and usually the final parameters.

"""

__all__ = "MinpackProblem all_problems get_problem problem_names".split()

import numpy as np

from .lm import LevenbergMarquardt
from .norms import enorm_mpfit_careful
from .problem import FuncProblem

_problems = {}


class MinpackProblem(object):
    """One of the MINPACK test functions.

    Attributes:

    name
      The registered name of the problem.
    nout
      The number of residuals.
    guess
      The standard starting point.
    references
      A dict mapping each starting-point factor to a tuple
      ``(fnorm1, fnorm2, params)``: the residual norm at the starting point,
      the residual norm at the solution, and the solution parameters (None if
      they are not reproducible).
    decimal
      The number of decimal places to which the (scaled) parameters are
      expected to agree with the reference values.

    The callbacks `func(params, vec)` and `jac(params, jac)` follow the
    :class:`trustlm.problem.FuncProblem` conventions.

    """

    def __init__(self, name, nout, func, jac, guess, references, decimal=10):
        self.name = name
        self.nout = nout
        self.func = func
        self.jac = jac
        self.guess = np.asarray(guess, dtype=float)
        self.references = references
        self.decimal = decimal

    @property
    def npar(self):
        return self.guess.size

    def __repr__(self):
        return "<MinpackProblem %s n=%d m=%d>" % (self.name, self.npar, self.nout)

    def make_problem(self):
        return FuncProblem(self.npar, self.nout, self.func, self.jac)

    def fnorm(self, params):
        """Compute the residual norm at *params*."""
        vec = np.empty(self.nout)
        self.func(np.asarray(params, dtype=float), vec)
        return enorm_mpfit_careful(vec, np.finfo(float))

    def default_config(self):
        """The settings of the MINPACK lmder1 driver."""
        tol = np.sqrt(np.finfo(float).eps)
        return (
            LevenbergMarquardt()
            .with_ftol(tol)
            .with_xtol(tol)
            .with_gtol(0.0)
            .with_maxiter(100 * (self.npar + 1))
        )

    def run(self, factor=1, config=None):
        """Minimize the problem from ``factor * guess``. Returns (problem,
        report) as :meth:`trustlm.lm.LevenbergMarquardt.minimize` does.

        """
        if config is None:
            config = self.default_config()

        return config.minimize(self.guess * factor, self.make_problem())


def _register(name, nout, guess, references, decimal=10):
    def decorator(setup):
        func, jac = setup()
        _problems[name] = MinpackProblem(
            name, nout, func, jac, guess, references, decimal=decimal
        )
        return setup

    return decorator


def problem_names():
    return sorted(_problems.keys())


def get_problem(name):
    try:
        return _problems[name]
    except KeyError:
        raise ValueError('unknown test problem "%s"' % name)


def all_problems():
    return [_problems[n] for n in problem_names()]


# The problems themselves. In the Jacobian callbacks, jac[i,j] is the
# derivative of residual j with respect to parameter i.


def _linear_full_rank(n, m):
    def func(params, vec):
        s = params.sum()
        temp = 2.0 * s / m + 1
        vec[:] = -temp
        vec[: params.size] += params

    def jac(params, jac):
        jac.fill(-2.0 / m)
        for i in range(n):
            jac[i, i] += 1

    return func, jac


@_register("linear_full_rank", 10, np.ones(5), {1: (5.0, 0.2236068e01, [-1.0] * 5)})
def _linear_full_rank_10():
    return _linear_full_rank(5, 10)


@_register(
    "linear_full_rank_50",
    50,
    np.ones(5),
    {1: (0.806225774e01, 0.670820393e01, [-1.0] * 5)},
)
def _linear_full_rank_50():
    return _linear_full_rank(5, 50)


# The parameters of the rank-1 problems are not determined by the data, and
# so the solutions found vary with rounding; only the norms are reproducible.


def _linear_rank1(n, m):
    def func(params, vec):
        s = 0
        for j in range(n):
            s += (j + 1) * params[j]
        for i in range(m):
            vec[i] = (i + 1) * s - 1

    def jac(params, jac):
        for i in range(n):
            for j in range(m):
                jac[i, j] = (i + 1) * (j + 1)

    return func, jac


@_register("linear_rank1", 10, np.ones(5), {1: (0.2915218688e03, 0.1463850109e01, None)})
def _linear_rank1_10():
    return _linear_rank1(5, 10)


@_register(
    "linear_rank1_50", 50, np.ones(5), {1: (0.310160039334e04, 0.34826301657e01, None)}
)
def _linear_rank1_50():
    return _linear_rank1(5, 50)


def _linear_r1zcr(n, m):
    def func(params, vec):
        s = 0
        for j in range(1, n - 1):
            s += (j + 1) * params[j]
        for i in range(m):
            vec[i] = i * s - 1
        vec[m - 1] = -1

    def jac(params, jac):
        jac.fill(0)

        for i in range(1, n - 1):
            for j in range(1, m - 1):
                jac[i, j] = j * (i + 1)

    return func, jac


@_register(
    "linear_rank1_zero_cols_rows",
    10,
    np.ones(5),
    {1: (0.1260396763e03, 0.1909727421e01, None)},
)
def _linear_r1zcr_10():
    return _linear_r1zcr(5, 10)


@_register(
    "linear_rank1_zero_cols_rows_50",
    50,
    np.ones(5),
    {1: (0.17489499707e04, 0.3691729402e01, None)},
)
def _linear_r1zcr_50():
    return _linear_r1zcr(5, 50)


@_register(
    "rosenbrock",
    2,
    [-1.2, 1.0],
    {
        1: (0.491934955050e01, 0.0, [1.0, 1.0]),
        10: (0.134006305822e04, 0.0, [1.0, 1.0]),
        100: (0.1430000511923e06, 0.0, [1.0, 1.0]),
    },
)
def _rosenbrock():
    def func(params, vec):
        vec[0] = 10 * (params[1] - params[0] ** 2)
        vec[1] = 1 - params[0]

    def jac(params, jac):
        jac[0, 0] = -20 * params[0]
        jac[0, 1] = -1
        jac[1, 0] = 10
        jac[1, 1] = 0

    return func, jac


@_register(
    "helical_valley",
    3,
    [-1.0, 0.0, 0.0],
    {
        1: (50.0, 0.993652310343e-16, [1.0, -0.624330159679e-17, 0.0]),
        10: (0.102956301410e03, 0.104467885065e-18, [1.0, 0.656391080516e-20, 0.0]),
        100: (0.991261822124e03, 0.313877781195e-28, [1.0, -0.197215226305e-29, 0.0]),
    },
)
def _helical_valley():
    tpi = 2 * np.pi

    def func(params, vec):
        if params[0] == 0:
            tmp1 = np.copysign(0.25, params[1])
        elif params[0] > 0:
            tmp1 = np.arctan(params[1] / params[0]) / tpi
        else:
            tmp1 = np.arctan(params[1] / params[0]) / tpi + 0.5

        tmp2 = np.sqrt(params[0] ** 2 + params[1] ** 2)

        vec[0] = 10 * (params[2] - 10 * tmp1)
        vec[1] = 10 * (tmp2 - 1)
        vec[2] = params[2]

    def jac(params, jac):
        temp = params[0] ** 2 + params[1] ** 2
        tmp1 = tpi * temp
        tmp2 = np.sqrt(temp)
        jac[0, 0] = 100 * params[1] / tmp1
        jac[0, 1] = 10 * params[0] / tmp2
        jac[0, 2] = 0
        jac[1, 0] = -100 * params[0] / tmp1
        jac[1, 1] = 10 * params[1] / tmp2
        jac[1, 2] = 0
        jac[2, 0] = 10
        jac[2, 1] = 0
        jac[2, 2] = 1

    return func, jac


# The minimum is at zero, where the Jacobian is singular; convergence is only
# linear and the final values depend on rounding, so none are recorded.


@_register(
    "powell_singular",
    4,
    [3.0, -1.0, 0.0, 1.0],
    {
        1: (0.1466287830e02, None, None),
        10: (0.1270983871e04, None, None),
        100: (0.1268879033e06, None, None),
    },
)
def _powell_singular():
    def func(params, vec):
        vec[0] = params[0] + 10 * params[1]
        vec[1] = np.sqrt(5) * (params[2] - params[3])
        vec[2] = (params[1] - 2 * params[2]) ** 2
        vec[3] = np.sqrt(10) * (params[0] - params[3]) ** 2

    def jac(params, jac):
        jac.fill(0)
        jac[0, 0] = 1
        jac[0, 3] = 2 * np.sqrt(10) * (params[0] - params[3])
        jac[1, 0] = 10
        jac[1, 2] = 2 * (params[1] - 2 * params[2])
        jac[2, 1] = np.sqrt(5)
        jac[2, 2] = -2 * jac[1, 2]
        jac[3, 1] = -np.sqrt(5)
        jac[3, 3] = -jac[0, 3]

    return func, jac


@_register(
    "freudenstein_roth",
    2,
    [0.5, -2.0],
    {
        1: (0.200124960962e02, 0.699887517585e01, [0.114124844655e02, -0.896827913732e00]),
        10: (0.124328339489e05, 0.699887517449e01, [0.114130046615e02, -0.896796038686e00]),
        100: (
            0.11426454595762e08,
            0.699887517243e01,
            [0.114127817858e02, -0.896805107492e00],
        ),
    },
)
def _freudenstein_roth():
    def func(params, vec):
        vec[0] = -13 + params[0] + ((5 - params[1]) * params[1] - 2) * params[1]
        vec[1] = -29 + params[0] + ((1 + params[1]) * params[1] - 14) * params[1]

    def jac(params, jac):
        jac[0] = 1
        jac[1, 0] = params[1] * (10 - 3 * params[1]) - 2
        jac[1, 1] = params[1] * (2 + 3 * params[1]) - 14

    return func, jac


_bard_y = np.asarray(
    [
        0.14,
        0.18,
        0.22,
        0.25,
        0.29,
        0.32,
        0.35,
        0.39,
        0.37,
        0.58,
        0.73,
        0.96,
        1.34,
        2.10,
        4.39,
    ]
)


@_register(
    "bard",
    15,
    [1.0, 1.0, 1.0],
    {
        1: (
            0.6456136295159668e01,
            0.9063596033904667e-01,
            [0.8241057657583339e-01, 0.1133036653471504e01, 0.2343694638941154e01],
        ),
        10: (
            0.3614185315967845e02,
            0.4174768701385386e01,
            [0.8406666738183293e00, -0.1588480332595655e09, -0.1643786716535352e09],
        ),
        100: (
            0.3841146786373992e03,
            0.4174768701359691e01,
            [0.8406666738676455e00, -0.1589461672055184e09, -0.1644649068577712e09],
        ),
    },
)
def _bard():
    def func(params, vec):
        for i in range(15):
            tmp2 = 15 - i

            if i > 7:
                tmp3 = tmp2
            else:
                tmp3 = i + 1

            vec[i] = _bard_y[i] - (
                params[0] + (i + 1) / (params[1] * tmp2 + params[2] * tmp3)
            )

    def jac(params, jac):
        for i in range(15):
            tmp2 = 15 - i

            if i > 7:
                tmp3 = tmp2
            else:
                tmp3 = i + 1

            tmp4 = (params[1] * tmp2 + params[2] * tmp3) ** 2
            jac[0, i] = -1
            jac[1, i] = (i + 1) * tmp2 / tmp4
            jac[2, i] = (i + 1) * tmp3 / tmp4

    return func, jac


_ko_v = np.asarray([4, 2, 1, 0.5, 0.25, 0.167, 0.125, 0.1, 0.0833, 0.0714, 0.0625])
_ko_y = np.asarray(
    [0.1957, 0.1947, 0.1735, 0.16, 0.0844, 0.0627, 0.0456, 0.0342, 0.0323, 0.0235, 0.0246]
)


# From 100 times the standard guess, the Fortran run stops by exhausting its
# function evaluations, so there is no comparable result.


@_register(
    "kowalik_osborne",
    11,
    [0.25, 0.39, 0.415, 0.39],
    {
        1: (
            0.7289151028829448e-01,
            0.1753583772112895e-01,
            [
                0.1928078104762493e00,
                0.1912626533540709e00,
                0.1230528010469309e00,
                0.1360532211505167e00,
            ],
        ),
        10: (
            0.2979370075552020e01,
            0.3205219291793696e-01,
            [
                0.7286754737686598e06,
                -0.1407588031293926e02,
                -0.3297779778419661e08,
                -0.2057159419780170e08,
            ],
        ),
    },
)
def _kowalik_osborne():
    v = _ko_v

    def func(params, vec):
        tmp1 = v * (v + params[1])
        tmp2 = v * (v + params[2]) + params[3]
        vec[:] = _ko_y - params[0] * tmp1 / tmp2

    def jac(params, jac):
        tmp1 = v * (v + params[1])
        tmp2 = v * (v + params[2]) + params[3]
        jac[0] = -tmp1 / tmp2
        jac[1] = -v * params[0] / tmp2
        jac[2] = jac[0] * jac[1]
        jac[3] = jac[2] / v

    return func, jac


_meyer_y = np.asarray(
    [
        3.478e4,
        2.861e4,
        2.365e4,
        1.963e4,
        1.637e4,
        1.372e4,
        1.154e4,
        9.744e3,
        8.261e3,
        7.03e3,
        6.005e3,
        5.147e3,
        4.427e3,
        3.82e3,
        3.307e3,
        2.872e3,
    ]
)


@_register(
    "meyer",
    16,
    [0.02, 4000.0, 250.0],
    {
        1: (
            0.4115346655430312e05,
            0.9377945146518742e01,
            [0.5609636471026614e-02, 0.6181346346286591e04, 0.3452236346241440e03],
        ),
    },
)
def _meyer():
    def func(params, vec):
        temp = 5 * (np.arange(16) + 1) + 45 + params[2]
        tmp1 = params[1] / temp
        tmp2 = np.exp(tmp1)
        vec[:] = params[0] * tmp2 - _meyer_y

    def jac(params, jac):
        temp = 5 * (np.arange(16) + 1) + 45 + params[2]
        tmp1 = params[1] / temp
        tmp2 = np.exp(tmp1)
        jac[0] = tmp2
        jac[1] = params[0] * tmp2 / temp
        jac[2] = -tmp1 * jac[1]

    return func, jac


def _watson():
    div = (np.arange(29) + 1.0) / 29

    def func(params, vec):
        s1 = 0
        dx = 1

        for j in range(1, params.size):
            s1 += j * dx * params[j]
            dx *= div

        s2 = 0
        dx = 1

        for j in range(params.size):
            s2 += dx * params[j]
            dx *= div

        vec[:29] = s1 - s2**2 - 1
        vec[29] = params[0]
        vec[30] = params[1] - params[0] ** 2 - 1

    def jac(params, jac):
        jac.fill(0)
        s2 = 0
        dx = 1

        for j in range(params.size):
            s2 += dx * params[j]
            dx *= div

        temp = 2 * div * s2
        dx = 1.0 / div

        for j in range(params.size):
            jac[j, :29] = dx * (j - temp)
            dx *= div

        jac[0, 29] = 1
        jac[0, 30] = -2 * params[0]
        jac[1, 30] = 1

    return func, jac


@_register(
    "watson",
    31,
    np.zeros(6),
    {
        1: (
            0.5477225575051661e01,
            0.4782959390976008e-01,
            [
                -0.1572496150837816e-01,
                0.1012434882329655e01,
                -0.2329917223876733e00,
                0.1260431011028184e01,
                -0.1513730313944205e01,
                0.9929972729184200e00,
            ],
        ),
    },
)
def _watson_6():
    return _watson()


@_register(
    "watson_9",
    31,
    np.zeros(9),
    {
        1: (
            0.5477225575051661e01,
            0.1183114592124197e-02,
            [
                -0.1530706441667223e-04,
                0.9997897039345969e00,
                0.1476396349109780e-01,
                0.1463423301459916e00,
                0.1000821094548170e01,
                -0.2617731120705071e01,
                0.4104403139433541e01,
                -0.3143612262362414e01,
                0.1052626403787590e01,
            ],
        ),
    },
    decimal=8,
)
def _watson_9():
    return _watson()
