# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

"""trustlm.problem - The objective functions handed to the minimizer

The minimizer talks to its objective through four methods::

    problem.set_params(x)   # move to a new point
    problem.params()        # the point last set
    problem.residuals()     # m-vector at that point, or None
    problem.jacobian()      # m-by-n matrix at that point, or None

Returning None means that the function is undefined at the current point.
Subclass :class:`Problem` directly, or wrap plain callbacks::

    def yfunc(params, vals):
        vals[:] = {stuff with params}
    def jfunc(params, jac):
        jac[i,j] = {deriv of val[j] w.r.t. params[i]}
        # i.e. jac[i] = {deriv of val wrt params[i]}

    p = FuncProblem(npar, nout, yfunc, jfunc)

Note that the callbacks fill the Jacobian in the transposed, one row per
parameter layout; :meth:`FuncProblem.jacobian` hands it to the minimizer as
the usual m-by-n matrix. Either callback may return False to declare the
current point undefined.

Automatic least-squares model-fitting (subtracts "observed" Y values and
multiplies by inverse errors)::

    def yrfunc(params, modelyvalues):
        modelyvalues[:] = {stuff with params}
    def yjfunc(params, modelyjac):
        jac[i,j] = {deriv of modelyvalue[j] w.r.t. params[i]}

    p = ResidualProblem(npar, yobs, errinv, yrfunc, yjfunc, reckless=False)

"""

__all__ = "Problem FuncProblem ResidualProblem".split()

import numpy as np

from .norms import anynotfinite


class Problem(object):
    """The interface between the minimizer and an objective function.

    Subclasses must implement all four methods.

    """

    def set_params(self, x):
        raise NotImplementedError()

    def params(self):
        raise NotImplementedError()

    def residuals(self):
        raise NotImplementedError()

    def jacobian(self):
        raise NotImplementedError()


class FuncProblem(Problem):
    """A :class:`Problem` computed by a pair of callbacks.

    Attributes:

    npar
      The number of parameters.
    nout
      The number of residuals.
    nfev
      The number of calls made to the residual callback.
    njev
      The number of calls made to the Jacobian callback.

    """

    nfev = 0
    njev = 0

    def __init__(self, npar, nout, yfunc, jfunc):
        try:
            npar = int(npar)
            assert npar >= 0
        except Exception:
            raise ValueError("npar must be a nonnegative integer")

        try:
            nout = int(nout)
            assert nout > 0
        except Exception:
            raise ValueError("nout must be a positive integer")

        if not callable(yfunc):
            raise ValueError("yfunc")
        if not callable(jfunc):
            raise ValueError("jfunc")

        self.npar = npar
        self.nout = nout
        self._yfunc = yfunc
        self._jfunc = jfunc
        self._params = np.zeros(npar)

    def set_params(self, x):
        x = np.atleast_1d(np.array(x, dtype=float))

        if x.shape != (self.npar,):
            raise ValueError(
                "expected exactly %d parameters, got %d" % (self.npar, x.size)
            )

        self._params = x

    def params(self):
        return self._params.copy()

    def residuals(self):
        self.nfev += 1
        vec = np.empty(self.nout)

        if self._yfunc(self._params, vec) is False:
            return None
        return vec

    def jacobian(self):
        self.njev += 1
        jac = np.empty((self.npar, self.nout))

        if self._jfunc(self._params, jac) is False:
            return None
        return jac.T.copy()


def ResidualProblem(npar, yobs, errinv, yfunc, jfunc, reckless=False):
    """Create a :class:`FuncProblem` minimizing ``(yobs - model) * errinv``.

    Parameters:
    npar     - the number of model parameters
    yobs     - 1-D arraylike, the observed values
    errinv   - the inverse uncertainties; scalar or shaped like yobs
    yfunc    - callback computing the model values: yfunc(params, modely)
    jfunc    - callback computing the model derivatives, npar-by-nout
    reckless - if false, nonfinite model values or derivatives make the
               current point undefined; if true they are passed along.

    """
    from numpy import subtract, multiply

    yobs = np.atleast_1d(np.asarray(yobs, dtype=float))
    errinv = np.asarray(errinv, dtype=float)

    if yobs.ndim != 1:
        raise ValueError("yobs must be one-dimensional")
    if anynotfinite(errinv):
        raise ValueError("some inverse errors are nonfinite")

    if reckless:

        def ywrap(pars, nresids):
            if yfunc(pars, nresids) is False:
                return False
            subtract(yobs, nresids, nresids)  # abs. residuals => nresids
            multiply(nresids, errinv, nresids)

        def jwrap(pars, jac):
            if jfunc(pars, jac) is False:
                return False
            multiply(jac, -1, jac)
            jac *= errinv  # broadcasts how we want

    else:

        def ywrap(pars, nresids):
            if yfunc(pars, nresids) is False or anynotfinite(nresids):
                return False
            subtract(yobs, nresids, nresids)
            multiply(nresids, errinv, nresids)

        def jwrap(pars, jac):
            if jfunc(pars, jac) is False or anynotfinite(jac):
                return False
            multiply(jac, -1, jac)
            jac *= errinv

    return FuncProblem(npar, yobs.size, ywrap, jwrap)
