# -*- mode: python; coding: utf-8 -*-
# Copyright (C) 1997-2011 Craig Markwardt
# Copyright 2003 Mark Rivers
# Copyright 2006, 2009-2011 (inclusive) Nadia Dencheva
# Copyright 2011-2017 (inclusive) Peter Williams
#
# This software is provided as is without any warranty whatsoever. Permission
# to use, copy, modify, and distribute modified or unmodified copies is
# granted, provided this copyright and disclaimer are included unchanged.

"""trustlm.lls - The linear least-squares problem with a diagonal block

Given the pivoted factorization J P = Q R of an m-by-n Jacobian and the
residual vector r, a :class:`LeastSquaresDiagonalProblem` solves

  J p = r
  D p = 0

in the least-squares sense for a diagonal matrix D, without ever forming
J^T J. This is the subproblem at the heart of each Levenberg-Marquardt
step. Instances are obtained from
:meth:`trustlm.qr.PivotedQR.into_least_squares_diagonal_problem`.

As in :mod:`trustlm.qr`, the triangular factor is stored transposed: the
full lower triangle of the n-by-n matrix `r` holds R^T. Its strict upper
triangle is scratch space that the solvers overwrite with S^T, where

  P^T (J^T J + D D) P = S^T S.

"""

__all__ = "LeastSquaresDiagonalProblem".split()

import numpy as np


def _qrd_solve(r, pmut, ddiag, bqt, sdiag):
    """Solve an equation given a QR factored matrix and a diagonal.

    Parameters:
    r     - **input-output** n-by-n array. The full lower triangle contains
            the full lower triangle of R^T. On output, the strict upper
            triangle contains the transpose of the strict lower triangle of
            S.
    pmut  - n-vector describing the permutation matrix P.
    ddiag - n-vector containing the diagonal of the matrix D, unpermuted.
    bqt   - n-vector containing the first n elements of Q^T b.
    sdiag - output n-vector. It is filled with the diagonal of S.

    Returns:
    x     - n-vector solving the equation.

    If the system is rank-deficient, the equations are solved as well as
    possible in a least-squares sense: components past the first zero on
    the diagonal of S are set to zero.

    """
    n = r.shape[0]

    # "Copy r and bqt to preserve input and initialize s. In particular,
    # save the diagonal elements of r in x." Only the full lower triangle of
    # R^T is meaningful on input, so we can mirror it into the upper triangle.

    for i in range(n):
        r[i, i:] = r[i:, i]

    x = r.diagonal().copy()
    zwork = bqt.copy()

    # "Eliminate the diagonal matrix d using a Givens rotation."

    for i in range(n):
        li = pmut[i]
        if ddiag[li] == 0:
            sdiag[i] = r[i, i]
            r[i, i] = x[i]
            continue

        sdiag[i:] = 0
        sdiag[i] = ddiag[li]

        # "The transformations to eliminate the row of d modify only a
        # single element of (q transpose)*b beyond the first n, which
        # is initially zero."

        bqtpi = 0.0

        for j in range(i, n):
            if sdiag[j] == 0:
                continue

            if abs(r[j, j]) < abs(sdiag[j]):
                cot = r[j, j] / sdiag[j]
                sin = 0.5 / np.sqrt(0.25 + 0.25 * cot**2)
                cos = sin * cot
            else:
                tan = sdiag[j] / r[j, j]
                cos = 0.5 / np.sqrt(0.25 + 0.25 * tan**2)
                sin = cos * tan

            r[j, j] = cos * r[j, j] + sin * sdiag[j]
            temp = cos * zwork[j] + sin * bqtpi
            bqtpi = -sin * zwork[j] + cos * bqtpi
            zwork[j] = temp

            if j + 1 < n:
                temp = cos * r[j, j + 1 :] + sin * sdiag[j + 1 :]
                sdiag[j + 1 :] = -sin * r[j, j + 1 :] + cos * sdiag[j + 1 :]
                r[j, j + 1 :] = temp

        # Save the diagonal of S and restore the diagonal of R^T.
        sdiag[i] = r[i, i]
        r[i, i] = x[i]

    # "Solve the triangular system for z. If the system is singular
    # then obtain a least squares solution."

    nsing = n

    for i in range(n):
        if sdiag[i] == 0.0:
            nsing = i
            zwork[i:] = 0
            break

    if nsing > 0:
        zwork[nsing - 1] /= sdiag[nsing - 1]
        for i in range(nsing - 2, -1, -1):
            s = np.dot(zwork[i + 1 : nsing], r[i, i + 1 : nsing])
            zwork[i] = (zwork[i] - s) / sdiag[i]

    x[pmut] = zwork
    return x


class LeastSquaresDiagonalProblem(object):
    """A factorized Jacobian plus residuals, ready for damped solves.

    Attributes:
    r            - n-by-n; full lower triangle is R^T (see module docs)
    permutation  - n-vector, the column permutation of the factorization
    column_norms - n-vector, norms of the Jacobian columns, unpermuted
    qt_b         - n-vector, the first n components of Q^T r
    rank         - numerical rank: the number of leading diagonal entries of R
                   with |R[j,j]| > eps * max(m,n) * |R[0,0]|

    """

    def __init__(self, r, permutation, column_norms, qt_b, enorm, finfo, m=None):
        self.r = r
        self.permutation = permutation
        self.column_norms = column_norms
        self.qt_b = qt_b
        self.enorm = enorm
        self.finfo = finfo
        self.sdiag = np.empty_like(qt_b)

        n = r.shape[0]
        if m is None:
            m = n

        self.rank = n
        abstol = finfo.eps * max(m, n) * abs(r[0, 0])

        for i in range(n):
            if abs(r[i, i]) <= abstol:
                self.rank = i
                break

    @property
    def n(self):
        return self.r.shape[0]

    def max_a_t_b_scaled(self, b_norm):
        """Return max_j |(J^T b)_j| / (|b| |J_j|) over nonzero columns.

        This is the cosine of the largest angle between the residual vector
        and a column of the Jacobian; it is zero when the residuals are
        orthogonal to every column. Zero-norm columns are skipped. NaN is
        returned if the data are degenerate.

        """
        if b_norm == 0:
            return 0.0

        gnorm = 0.0

        for j in range(self.n):
            cnorm = self.column_norms[self.permutation[j]]
            if cnorm == 0:
                continue

            s = np.dot(self.qt_b[: j + 1], self.r[j, : j + 1]) / b_norm
            s = abs(s / cnorm)

            if np.isnan(s):
                return np.nan

            gnorm = max(gnorm, s)

        return gnorm

    def solve_with_zero_diagonal(self):
        """Compute the Gauss-Newton solution of J p = r.

        If R has full rank this is plain back-substitution. Otherwise the
        trailing rows of R are negligible and p is the minimum-norm solution
        of the leading `rank` rows. Returns p.

        """
        n = self.n
        r = self.r
        k = self.rank
        x = np.zeros(n, self.finfo.dtype)

        if k == 0:
            return x

        if k < n:
            # Leading rows of R; its transpose lives in the lower triangle.
            rk = np.triu(r.T)[:k]
            x[self.permutation] = np.linalg.lstsq(rk, self.qt_b[:k], rcond=None)[0]
            return x

        wa1 = self.qt_b.copy()

        for j in range(n - 1, -1, -1):
            wa1[j] /= r[j, j]
            wa1[:j] -= r[j, :j] * wa1[j]

        x[self.permutation] = wa1
        return x

    def solve_with_diagonal(self, ddiag):
        """Solve J p = r, D p = 0 in the least-squares sense.

        Parameters:
        ddiag - n-vector, the diagonal of D, unpermuted

        Returns p. As a side effect the diagonal of the factor S is left in
        `self.sdiag` and its strict lower triangle in the strict upper
        triangle of `self.r`, for use by the damping-parameter iteration.

        """
        return _qrd_solve(self.r, self.permutation, ddiag, self.qt_b, self.sdiag)

    def solve(self, damping, diag):
        """Minimize |r - J p|^2 + damping^2 |diag * p|^2 over p.

        Parameters:
        damping - nonnegative scalar
        diag    - n-vector of strictly positive scale factors

        Returns:
        p      - n-vector, the minimizer
        dxnorm - scalar, enorm(diag * p)

        """
        if damping < 0:
            raise ValueError("damping parameter must be nonnegative")

        if damping == 0:
            p = self.solve_with_zero_diagonal()
        else:
            p = self.solve_with_diagonal(damping * diag)

        return p, self.enorm(diag * p, self.finfo)

    def a_x_norm(self, x):
        """Return enorm(J x), computed from the triangular factor."""
        n = self.n
        w = np.zeros(n, self.finfo.dtype)

        for j in range(n):
            w[: j + 1] += self.r[j, : j + 1] * x[self.permutation[j]]

        return self.enorm(w, self.finfo)

    def covariance(self, tol=1e-14):
        """Calculate the covariance matrix (J^T J)^-1.

        Parameters:
        tol  - scalar, relative column scale for determining rank
               deficiency. Default 1e-14.

        Returns:
        cov  - n-by-n matrix

        If J is nearly rank-deficient, we compute the covariance matrix
        corresponding to its linearly-independent columns only. If j is the
        largest integer such that |R[j,j]| > tol*|R[0,0]|, the covariance
        is computed for the first j permuted columns; entries involving the
        other columns are set to zero.

        """
        pmut = self.permutation
        n = self.n
        r = self.r.copy()

        # Form the inverse of R^T in the full lower triangle of r.

        jrank = -1
        abstol = tol * abs(r[0, 0])

        for i in range(n):
            if abs(r[i, i]) <= abstol:
                break

            r[i, i] **= -1

            for j in range(i):
                temp = r[i, i] * r[i, j]
                r[i, j] = 0.0
                r[i, : j + 1] -= temp * r[j, : j + 1]

            jrank = i

        # Form the full lower triangle of inverse(R^T R) in the full lower
        # triangle of r.

        for i in range(jrank + 1):
            for j in range(i):
                r[j, : j + 1] += r[i, j] * r[i, : j + 1]
            r[i, : i + 1] *= r[i, i]

        # Unpermute into the strict upper triangle of r and wa.

        wa = np.empty(n)
        wa.fill(r[0, 0])

        for i in range(n):
            pi = pmut[i]
            sing = i > jrank

            for j in range(i + 1):
                if sing:
                    r[i, j] = 0.0

                pj = pmut[j]
                if pj > pi:
                    r[pi, pj] = r[i, j]
                elif pj < pi:
                    r[pj, pi] = r[i, j]

            wa[pi] = r[i, i]

        # Symmetrize.

        for i in range(n):
            r[i, : i + 1] = r[: i + 1, i]
            r[i, i] = wa[i]

        return r
