# -*- mode: python; coding: utf-8 -*-
# Copyright (C) 1997-2011 Craig Markwardt
# Copyright 2003 Mark Rivers
# Copyright 2006, 2009-2011 (inclusive) Nadia Dencheva
# Copyright 2011-2017 (inclusive) Peter Williams
#
# This software is provided as is without any warranty whatsoever. Permission
# to use, copy, modify, and distribute modified or unmodified copies is
# granted, provided this copyright and disclaimer are included unchanged.

"""trustlm.lmpar - Calculation of the Levenberg-Marquardt parameter

"""

__all__ = "determine_lambda_and_parameter_update".split()

import numpy as np

MAX_ITERATIONS = 10


def determine_lambda_and_parameter_update(lls, diag, delta, initial_lambda):
    """Compute the Levenberg-Marquardt parameter and solution vector.

    Parameters:
    lls            - a :class:`trustlm.lls.LeastSquaresDiagonalProblem`
    diag           - n-vector, diagonal elements of D, strictly positive
    delta          - positive scalar, the trust-region radius
    initial_lambda - nonnegative scalar, initial estimate of the LM parameter

    Returns:
    par    - nonnegative scalar, final estimate of the LM parameter
    x      - n-vector, least-squares solution of the LM equation
    dxnorm - scalar, enorm(D x)

    The LM parameter 'par' and solution 'x' are chosen such that 'x' is the
    least-squares solution to

     J x = b
     sqrt(par) * D x = 0

    and either

     (1) par = 0, dxnorm - delta <= 0.1 delta or
     (2) par > 0 and |dxnorm - delta| <= 0.1 delta

    Usually only a few iterations are needed, but no more than 10 are
    performed. In terms of :meth:`LeastSquaresDiagonalProblem.solve`,
    'par' is the square of the damping parameter.

    """
    enorm = lls.enorm
    finfo = lls.finfo
    dwarf = finfo.tiny
    n = lls.n
    r = lls.r
    pmut = lls.permutation

    # "Compute and store x in the Gauss-Newton direction. If the
    # Jacobian is rank-deficient, obtain a least-squares solution."

    x = lls.solve_with_zero_diagonal()

    # Check if the Gauss-Newton direction was good enough.

    wa2 = diag * x
    dxnorm = enorm(wa2, finfo)
    normdiff = dxnorm - delta

    if normdiff <= 0.1 * delta:
        return 0.0, x, dxnorm

    # If the Jacobian is not rank deficient, the Newton step provides
    # a lower bound for the zero of the function.

    par_lower = 0.0

    if lls.rank == n:
        wa1 = diag[pmut] * wa2[pmut] / dxnorm
        wa1[0] /= r[0, 0]

        for j in range(1, n):
            wa1[j] = (wa1[j] - np.dot(wa1[:j], r[j, :j])) / r[j, j]

        temp = enorm(wa1, finfo)
        par_lower = normdiff / delta / temp**2

    # We can always find an upper bound.

    wa1 = np.empty(n, finfo.dtype)

    for j in range(n):
        wa1[j] = np.dot(lls.qt_b[: j + 1], r[j, : j + 1]) / diag[pmut[j]]

    gnorm = enorm(wa1, finfo)
    par_upper = gnorm / delta
    if par_upper == 0:
        par_upper = dwarf / min(delta, 0.1)

    # Now iterate our way to victory.

    par = np.clip(initial_lambda, par_lower, par_upper)
    if par == 0:
        par = gnorm / dxnorm

    itercount = 0

    while True:
        itercount += 1

        if par == 0:
            par = max(dwarf, par_upper * 0.001)

        x = lls.solve_with_diagonal(np.sqrt(par) * diag)
        sdiag = lls.sdiag
        wa2 = diag * x
        dxnorm = enorm(wa2, finfo)
        olddiff = normdiff
        normdiff = dxnorm - delta

        if abs(normdiff) < 0.1 * delta:
            break
        if par_lower == 0 and normdiff <= olddiff and olddiff < 0:
            break
        if itercount == MAX_ITERATIONS:
            break

        # Compute and apply the Newton correction.

        wa1 = diag[pmut] * wa2[pmut] / dxnorm

        for j in range(n - 1):
            wa1[j] /= sdiag[j]
            wa1[j + 1 : n] -= r[j, j + 1 : n] * wa1[j]
        wa1[n - 1] /= sdiag[n - 1]

        par_delta = normdiff / delta / enorm(wa1, finfo) ** 2

        if normdiff > 0:
            par_lower = max(par_lower, par)
        elif normdiff < 0:
            par_upper = min(par_upper, par)

        par = max(par_lower, par + par_delta)

    return float(par), x, dxnorm
