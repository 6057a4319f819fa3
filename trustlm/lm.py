# -*- mode: python; coding: utf-8 -*-
# Copyright (C) 1997-2011 Craig Markwardt
# Copyright 2003 Mark Rivers
# Copyright 2006, 2009-2011 (inclusive) Nadia Dencheva
# Copyright 2011-2017 (inclusive) Peter Williams
#
# This software is provided as is without any warranty whatsoever. Permission
# to use, copy, modify, and distribute modified or unmodified copies is
# granted, provided this copyright and disclaimer are included unchanged.

### This implementation of the Levenberg-Marquardt technique has its origins
### in MINPACK-1 (the lmdif and lmder subroutines), by Jorge Moré, Burt
### Garbow, and Ken Hillstrom, by way of Craig Markwardt's MPFIT and its
### Python ports.
#
# == Academic References ==
#
# Levenberg, K. 1944, "A method for the solution of certain nonlinear
#  problems in least squares," Quart. Appl. Math., vol. 2,
#  pp. 164-168.
#
# Marquardt, DW. 1963, "An algorithm for least squares estimation of
#  nonlinear parameters," SIAM J. Appl. Math., vol. 11, pp. 431-441.
#  (DOI: 10.1137/0111030 )
#
# Moré, J. 1978, "The Levenberg-Marquardt Algorithm: Implementation
#  and Theory," in Numerical Analysis, vol. 630, ed. G. A. Watson
#  (Springer-Verlag: Berlin), p. 105 (DOI: 10.1007/BFb0067700 )

"""trustlm.lm - Trust-region Levenberg-Marquardt minimization

Basic usage::

    from trustlm.lm import LevenbergMarquardt
    from trustlm.problem import FuncProblem

    p = FuncProblem(npar, nout, yfunc, jfunc)
    config = LevenbergMarquardt().with_gtol(1e-8).with_stepbound(10.)
    problem, report = config.minimize(guess, p)

    if report.termination.successful:
        print(report.params, report.perror)

Configuration (attributes of :class:`LevenbergMarquardt`, each with a
chaining ``with_*`` setter):

ftol
  The relative error desired in the sum of squares.
xtol
  The relative error desired in the approximate solution.
gtol
  The orthogonality desired between the residuals and the columns of the
  Jacobian.
stepbound
  The initial trust-region radius is `stepbound` times the norm of the
  scaled initial parameters (or `stepbound` itself if that is zero).
maxiter
  The maximum number of iterations allowed.
scale_diag
  If true, parameters are scaled by the running maximum of the Jacobian
  column norms; if false, they are left unscaled.
normfunc
  A function to compute the norm of a vector; see :mod:`trustlm.norms`.

Each outer iteration evaluates the Jacobian, factorizes it with
:class:`trustlm.qr.PivotedQR`, updates the scaling and trust region with
:meth:`LM.update_diag`, and then searches for an acceptable step. The run
ends with one of the values in :mod:`trustlm.termination`.

"""

__all__ = "LM LevenbergMarquardt MinimizationReport Terminated".split()

import logging

import numpy as np

from . import LMError
from .kwargv import Custom, KwargvError, ParseKeywords
from .lmpar import determine_lambda_and_parameter_update
from .norms import anynotfinite, enorm_mpfit_careful, lookup_norm
from .qr import NonFiniteError, PivotedQR
from .termination import (
    Converged,
    MaxIterations,
    NoImprovementPossible,
    NoParameters,
    NotEnoughResiduals,
    Numerical,
    Orthogonal,
    ResidualsZero,
    User,
    WrongDimensions,
)

logger = logging.getLogger(__name__)

# A step is accepted if the actual reduction is at least this fraction of
# the predicted one.
ACCEPT_RATIO = 1e-4


class Terminated(LMError):
    """Raised by :meth:`LM.new` when the starting point ends the run before it
    begins. The reason is stored in the `reason` attribute.

    """

    def __init__(self, reason, residuals=None):
        super(Terminated, self).__init__("minimization terminated: %r", reason)
        self.reason = reason
        self.residuals = residuals


class MinimizationReport(object):
    """The outcome of a Levenberg-Marquardt run. Attributes:

    termination        - A :class:`trustlm.termination.TerminationReason`.
    params             - The final parameters.
    fvec               - The residuals at `params`.
    fnorm              - The final sum of squared residuals.
    objective_function - Half of `fnorm`.
    niter              - The number of iterations; starts at 1.
    nfev               - The number of residual evaluations.
    njev               - The number of Jacobian evaluations.
    covar              - The covariance of the parameters, or None.
    perror             - The 1σ errors on the parameters, or None.

    `covar` and `perror` come from the most recent factorization of the
    Jacobian, and are None if the Jacobian was never factorized.

    """

    termination = None
    params = None
    fvec = None
    fnorm = None
    objective_function = None
    niter = 0
    nfev = 0
    njev = 0
    covar = None
    perror = None

    def __init__(self, termination):
        self.termination = termination

    def __repr__(self):
        return "<MinimizationReport %r fnorm=%r niter=%d>" % (
            self.termination,
            self.fnorm,
            self.niter,
        )


class ConfigKeywords(ParseKeywords):
    """Command-line keywords for :meth:`LevenbergMarquardt.from_keywords`.
    Unset keywords are None and leave the defaults alone.

    """

    ftol = float
    xtol = float
    gtol = float
    stepbound = float
    maxiter = int
    scale_diag = bool

    @Custom(str)
    def normfunc(value):
        if value is None:
            return None
        try:
            return lookup_norm(value)
        except ValueError as e:
            raise KwargvError("bad normfunc keyword: %s", e)


class LevenbergMarquardt(object):
    """Configuration of a Levenberg-Marquardt run.

    All setters return `self`, so calls may be chained. The values are
    checked and coerced by :meth:`LM.new` at the start of every run.

    """

    ftol = 1e-10
    xtol = 1e-10
    gtol = 1e-10
    stepbound = 100.0
    maxiter = 200
    scale_diag = True
    normfunc = None

    def with_ftol(self, ftol):
        self.ftol = ftol
        return self

    def with_xtol(self, xtol):
        self.xtol = xtol
        return self

    def with_gtol(self, gtol):
        self.gtol = gtol
        return self

    def with_tol(self, tol):
        """Set ftol, xtol and gtol all at once."""
        self.ftol = self.xtol = self.gtol = tol
        return self

    def with_stepbound(self, stepbound):
        self.stepbound = stepbound
        return self

    def with_maxiter(self, maxiter):
        self.maxiter = maxiter
        return self

    def with_scale_diag(self, scale_diag):
        self.scale_diag = scale_diag
        return self

    def with_normfunc(self, normfunc):
        self.normfunc = normfunc
        return self

    def copy(self):
        n = self.__class__()
        n.__dict__.update(self.__dict__)
        return n

    @classmethod
    def from_keywords(cls, args):
        """Build a configuration from ``key=value`` strings, as typed on a
        command line. Unspecified keys keep their defaults. Raises
        :exc:`trustlm.kwargv.KwargvError` on bad input.

        """
        kw = ConfigKeywords().parse(args)
        self = cls()

        for name, value in kw.to_dict().items():
            if name.startswith("_") or value is None:
                continue
            setattr(self, name, value)

        return self

    def _fixup_check(self):
        self.ftol = float(self.ftol)
        self.xtol = float(self.xtol)
        self.gtol = float(self.gtol)
        self.stepbound = float(self.stepbound)
        self.maxiter = int(self.maxiter)
        self.scale_diag = bool(self.scale_diag)

        if self.normfunc is None:
            self.normfunc = enorm_mpfit_careful
        elif not callable(self.normfunc):
            raise ValueError("normfunc must be a callable or None")

        if not self.ftol >= 0.0:
            raise ValueError("ftol")

        if not self.xtol >= 0.0:
            raise ValueError("xtol")

        if not self.gtol >= 0.0:
            raise ValueError("gtol")

        if not self.stepbound > 0.0 or not np.isfinite(self.stepbound):
            raise ValueError("stepbound")

        if self.maxiter < 1:
            raise ValueError("maxiter")

    def minimize(self, initial_x, problem):
        """Minimize the sum of squared residuals of *problem*.

        Parameters:
        initial_x - n-vector, the starting parameters
        problem   - a :class:`trustlm.problem.Problem`

        Returns:
        problem   - the same problem, with its parameters set to the best
                    point found
        report    - a :class:`MinimizationReport`

        """
        try:
            lm, residuals = LM.new(self, initial_x, problem)
        except Terminated as e:
            logger.debug("terminated at the starting point: %r", e.reason)
            report = MinimizationReport(e.reason)
            report.params = np.atleast_1d(np.array(initial_x, dtype=float))
            report.nfev = 1 if report.params.size else 0
            if e.residuals is not None:
                report.fvec = e.residuals
                report.fnorm = float(np.dot(e.residuals, e.residuals))
                report.objective_function = 0.5 * report.fnorm
            return problem, report

        while True:
            reason = lm.step()
            if reason is not None:
                break

        return problem, lm.finish(reason)


class LM(object):
    """The running state of one Levenberg-Marquardt minimization.

    An instance is created by :meth:`LM.new` and then advanced one outer
    iteration at a time by :meth:`LM.step`. The state that persists across
    iterations is:

    x
      The current parameters.
    residuals
      The residuals at `x`.
    fnorm
      The norm of `residuals`.
    diag
      The per-parameter scale factors. All ones until the first call to
      :meth:`update_diag`, and forever if scaling is disabled.
    xnorm
      The norm of ``diag * x``.
    delta
      The trust-region radius.
    lmpar
      The most recent Levenberg-Marquardt parameter.
    first_call
      True until :meth:`update_diag` has initialized `diag`, `xnorm` and
      `delta`.

    """

    def __init__(self, config, x, problem, residuals, fnorm):
        self.config = config
        self.problem = problem
        self.enorm = config.normfunc
        self.finfo = np.finfo(x.dtype)
        self.x = x
        self.residuals = residuals
        self.fnorm = fnorm
        self.diag = np.ones(x.size, x.dtype)
        self.xnorm = 0.0
        self.delta = 0.0
        self.lmpar = 0.0
        self.gnorm = 0.0
        self.first_call = True
        self.niter = 1
        self.nfev = 1
        self.njev = 0
        self.last_lls = None
        self._problem_at_x = True

    @classmethod
    def new(cls, config, initial_x, problem):
        """Start a run: set the parameters and evaluate the residuals once.

        Returns (lm, residuals). Raises :exc:`Terminated` if the starting
        point rules out any progress. Nonfinite starting parameters are not
        rejected here; the first :meth:`update_diag` reports them.

        """
        config._fixup_check()

        x = np.atleast_1d(np.array(initial_x, dtype=float))
        if x.ndim != 1:
            raise ValueError("initial parameters must be a vector")
        if x.size == 0:
            raise Terminated(NoParameters())

        problem.set_params(x)
        logger.debug("evaluating residuals at starting point %s", x)
        residuals = problem.residuals()

        if residuals is None:
            raise Terminated(User("residuals"))

        residuals = np.atleast_1d(np.asarray(residuals, dtype=float))

        if residuals.ndim != 1:
            raise Terminated(WrongDimensions("residuals"))
        if residuals.size < x.size:
            raise Terminated(NotEnoughResiduals())
        if anynotfinite(residuals):
            raise Terminated(Numerical("residuals"))

        fnorm = config.normfunc(residuals, np.finfo(x.dtype))

        if fnorm == 0:
            raise Terminated(ResidualsZero(), residuals)

        return cls(config, x, problem, residuals, fnorm), residuals

    def update_diag(self, lls):
        """Bring the scaling, scaled norm and trust region up to date.

        Parameters:
        lls - the :class:`trustlm.lls.LeastSquaresDiagonalProblem` built from
              the Jacobian and residuals at the current parameters

        Returns None on success, or the reason to stop. Nothing is modified
        if a nonfinite value is found.

        On the first call, `diag` is set to the Jacobian column norms (ones
        for zero columns), and `xnorm` and `delta` are initialized. On later
        calls `diag` only grows, to the elementwise maximum of its old value
        and the new column norms, and `xnorm` and `delta` are left alone.
        With scaling disabled `diag` stays all ones.

        """
        cfg = self.config

        if anynotfinite(self.x):
            return Numerical("subproblem x")

        column_norms = lls.column_norms
        gnorm = lls.max_a_t_b_scaled(self.fnorm)

        if anynotfinite(column_norms) or not np.isfinite(gnorm):
            return Numerical("jacobian")

        if cfg.scale_diag:
            if self.first_call:
                self.diag[:] = column_norms
                self.diag[self.diag == 0] = 1.0
            else:
                np.maximum(self.diag, column_norms, out=self.diag)

        if self.first_call:
            self.xnorm = self.enorm(self.diag * self.x, self.finfo)

            if self.xnorm == 0:
                self.delta = cfg.stepbound
            else:
                self.delta = cfg.stepbound * self.xnorm

            self.first_call = False

        self.gnorm = gnorm

        if gnorm <= cfg.gtol:
            return Orthogonal()

        return None

    def step(self):
        """Perform one outer iteration.

        Returns None if a step was accepted and the run should continue, or
        the reason to stop.

        """
        cfg = self.config
        enorm = self.enorm
        finfo = self.finfo
        problem = self.problem
        n = self.x.size
        m = self.residuals.size

        logger.debug("evaluating jacobian at %s", self.x)
        jac = problem.jacobian()
        self.njev += 1

        if jac is None:
            return User("jacobian")

        jac = np.asarray(jac, dtype=finfo.dtype)

        if jac.shape != (m, n):
            return WrongDimensions("jacobian")

        try:
            qr = PivotedQR(jac, enorm, finfo.dtype)
        except NonFiniteError:
            return Numerical("jacobian")

        lls = qr.into_least_squares_diagonal_problem(self.residuals)
        self.last_lls = lls

        reason = self.update_diag(lls)
        if reason is not None:
            return reason

        while True:
            self.lmpar, p, _ = determine_lambda_and_parameter_update(
                lls, self.diag, self.delta, self.lmpar
            )

            # "Store the direction p and x+p. Calculate the norm of p"
            p *= -1
            trial = self.x + p
            pnorm = enorm(self.diag * p, finfo)

            # On first iter, also adjust initial step bound
            if self.niter == 1:
                self.delta = min(self.delta, pnorm)

            problem.set_params(trial)
            self._problem_at_x = False
            new_residuals = problem.residuals()
            self.nfev += 1

            if new_residuals is not None:
                new_residuals = np.atleast_1d(
                    np.asarray(new_residuals, dtype=finfo.dtype)
                )
                if new_residuals.shape != (m,):
                    return WrongDimensions("residuals")

            if new_residuals is None or anynotfinite(new_residuals):
                # Undefined here: the step fails and the region shrinks.
                logger.debug("residuals undefined at trial point %s", trial)
                new_residuals = None
                fnorm1 = np.inf
            else:
                fnorm1 = enorm(new_residuals, finfo)

            # Compute scaled actual reduction

            actred = -1.0
            if 0.1 * fnorm1 < self.fnorm:
                actred = 1 - (fnorm1 / self.fnorm) ** 2

            # Compute scaled predicted reduction and scaled directional
            # derivative

            temp1 = lls.a_x_norm(p) / self.fnorm
            temp2 = np.sqrt(self.lmpar) * pnorm / self.fnorm
            prered = temp1**2 + 2 * temp2**2
            dirder = -(temp1**2 + temp2**2)

            ratio = 0.0
            if prered != 0:
                ratio = actred / prered

            logger.debug(
                "trial step: lmpar=%g pnorm=%g fnorm1=%g ratio=%g",
                self.lmpar,
                pnorm,
                fnorm1,
                ratio,
            )

            # Update the step bound

            if ratio <= 0.25:
                if actred >= 0:
                    temp = 0.5
                else:
                    temp = 0.5 * dirder / (dirder + 0.5 * actred)

                if 0.1 * fnorm1 >= self.fnorm or temp < 0.1:
                    temp = 0.1

                self.delta = temp * min(self.delta, 10 * pnorm)
                self.lmpar /= temp
            elif self.lmpar == 0 or ratio >= 0.75:
                self.delta = 2 * pnorm
                self.lmpar *= 0.5

            if ratio >= ACCEPT_RATIO:
                # Successful iteration.
                self.x = trial
                self.residuals = new_residuals
                self.xnorm = enorm(self.diag * self.x, finfo)
                self.fnorm = fnorm1
                self.niter += 1
                self._problem_at_x = True

                if self.fnorm == 0:
                    return ResidualsZero()

            reason = self._check_convergence(actred, prered, ratio)
            if reason is not None:
                return reason

            # Repeat if the iteration was unsuccessful.
            if ratio >= ACCEPT_RATIO:
                return None

    def _check_convergence(self, actred, prered, ratio):
        cfg = self.config
        eps = self.finfo.eps

        ftol_ok = abs(actred) <= cfg.ftol and prered <= cfg.ftol and ratio <= 2
        xtol_ok = self.delta <= cfg.xtol * self.xnorm

        if ftol_ok or xtol_ok:
            return Converged(ftol=ftol_ok, xtol=xtol_ok)

        if self.niter >= cfg.maxiter:
            return MaxIterations()

        # "Stringent tolerances"

        if abs(actred) <= eps and prered <= eps and ratio <= 2:
            return NoImprovementPossible("ftol")

        if self.delta <= eps * self.xnorm:
            return NoImprovementPossible("xtol")

        if self.gnorm <= eps:
            return NoImprovementPossible("gtol")

        return None

    def finish(self, reason):
        """Wrap up the run, returning a :class:`MinimizationReport`.

        If the last trial point was rejected, the problem is moved back to
        the best parameters found.

        """
        logger.debug("terminated after %d iterations: %r", self.niter, reason)

        if not self._problem_at_x:
            self.problem.set_params(self.x)
            self._problem_at_x = True

        report = MinimizationReport(reason)
        report.params = self.x.copy()
        report.fvec = self.residuals.copy()
        report.fnorm = float(self.fnorm) ** 2
        report.objective_function = 0.5 * report.fnorm
        report.niter = self.niter
        report.nfev = self.nfev
        report.njev = self.njev

        if self.last_lls is not None:
            covar = self.last_lls.covariance()
            report.covar = covar
            report.perror = np.zeros(self.x.size)
            d = covar.diagonal()
            wh = np.where(d >= 0)
            report.perror[wh] = np.sqrt(d[wh])

        return report
