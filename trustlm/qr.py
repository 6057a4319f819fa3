# -*- mode: python; coding: utf-8 -*-
# Copyright (C) 1997-2011 Craig Markwardt
# Copyright 2003 Mark Rivers
# Copyright 2006, 2009-2011 (inclusive) Nadia Dencheva
# Copyright 2011-2017 (inclusive) Peter Williams
#
# This software is provided as is without any warranty whatsoever. Permission
# to use, copy, modify, and distribute modified or unmodified copies is
# granted, provided this copyright and disclaimer are included unchanged.

# == Transposition ==
#
# Callers hand us Jacobians in the usual m-by-n layout (one row per residual,
# one column per parameter), but all of the work happens on the transposed
# n-by-m copy. In Fortran the columns are adjacent in memory; in Numpy the
# rows are, so transposing matches the algorithms to the memory layout that
# MINPACK intended. The factorization of interest is
#
#  J P = Q R or, in Python,
#  jac[:,pmut] == np.dot (q, r)
#
# and the transposed version that is actually computed is
#
#  A P = R^T Q^T, with A = J^T
#
# where R^T is n-by-m and lower triangular. Everything stored on the
# factorization objects is in the transposed form; `PivotedQR.unpack` turns
# it back into ordinary Q and R matrices.

"""trustlm.qr - Column-pivoting Householder QR factorization

Usage::

    from trustlm.qr import PivotedQR

    qr = PivotedQR(jac)             # jac is m-by-n, m >= n
    qr.permutation                  # jac[:,qr.permutation] has nonincreasing norms
    qr.column_norms                 # norms of the columns of jac, unpermuted
    q, r = qr.unpack()              # jac[:,qr.permutation] == q @ r
    lls = qr.into_least_squares_diagonal_problem(resids)

The form of this transformation and the method of pivoting first appeared in
LINPACK.

"""

__all__ = "NonFiniteError PivotedQR".split()

import numpy as np

from . import LMError
from .norms import anynotfinite, enorm_mpfit_careful


class NonFiniteError(LMError):
    """Raised when a matrix to be factorized contains NaN or infinite entries."""


def _qr_factor_packed(a, enorm, finfo):
    """Compute the packed pivoting Q-R factorization of a matrix.

    Parameters:
    a     - An n-by-m matrix, m >= n. This will be *overwritten*
            by this function as described below!
    enorm - A Euclidian-norm-computing function.
    finfo - A Numpy finfo object.

    Returns:
    pmut   - An n-element permutation vector
    rdiag  - An n-element vector of the diagonal of R
    acnorm - An n-element vector of the norms of the rows
             of the input matrix 'a'.

    "Pivoting" refers to permuting the rows of 'a' to have their norms in
    nonincreasing order. The rows are physically swapped as we go, so that
    on output the i'th row of 'a' belongs to the i'th pivot position and
    pmut[i] is the index of the original row that landed there.

    On output the strict lower triangular part of 'a' contains the strict
    lower triangular part of R^T; its diagonal is returned in 'rdiag'. The
    upper trapezoidal part of 'a' contains the Householder vectors whose
    product is Q. The i'th Householder matrix is

    H_i = I - (v v^T) / v[i]

    where 'v' is the i'th row of 'a' with its strict lower triangular part
    set to zero.

    'acnorm' contains the norms of the rows of the original input
    matrix 'a' without permutation.

    """
    machep = finfo.eps
    n, m = a.shape

    if m < n:
        raise ValueError('"a" must be at least as tall as it is wide')

    acnorm = np.empty(n, finfo.dtype)
    for j in range(n):
        acnorm[j] = enorm(a[j], finfo)

    rdiag = acnorm.copy()
    wa = acnorm.copy()
    pmut = np.arange(n)

    for i in range(n):
        # Bring the row with the largest remaining norm into position i.
        # Ties go to the lowest original column index.

        cand = np.flatnonzero(rdiag[i:] == rdiag[i:].max()) + i
        kmax = cand[np.argmin(pmut[cand])]

        if kmax != i:
            pmut[i], pmut[kmax] = pmut[kmax], pmut[i]
            rdiag[kmax] = rdiag[i]
            wa[kmax] = wa[i]
            a[[i, kmax]] = a[[kmax, i]]

        # Compute the Householder transformation to reduce the i'th
        # row of A to a multiple of the i'th unit vector.

        ainorm = enorm(a[i, i:], finfo)

        if ainorm == 0:
            rdiag[i] = 0
            continue

        if a[i, i] < 0:
            ainorm = -ainorm

        a[i, i:] /= ainorm
        a[i, i] += 1

        # Apply the transformation to the remaining rows and downdate
        # their norms.

        for j in range(i + 1, n):
            a[j, i:] -= a[i, i:] * np.dot(a[i, i:], a[j, i:]) / a[i, i]

            if rdiag[j] != 0:
                rdiag[j] *= np.sqrt(max(1 - (a[j, i] / rdiag[j]) ** 2, 0))

                if 0.05 * (rdiag[j] / wa[j]) ** 2 <= machep:
                    # Too much cancellation in the downdate: recompute.
                    wa[j] = rdiag[j] = enorm(a[j, i + 1 :], finfo)

        rdiag[i] = -ainorm

    return pmut, rdiag, acnorm


class PivotedQR(object):
    """The pivoted Q-R factorization of a Jacobian matrix.

    Parameters:
    jacobian - An m-by-n arraylike, m >= n. It is copied, never modified.
    normfunc - (optional) A Euclidian-norm-computing function from
               :mod:`trustlm.norms`. Default is enorm_mpfit_careful.
    dtype    - (optional) The data type to use for computations.

    Attributes:
    permutation  - n-vector; output column i is original column permutation[i]
    column_norms - n-vector of the norms of the original columns, unpermuted
    rdiag        - n-vector, the (signed) diagonal of R
    shape        - (m, n)

    Raises NonFiniteError if the matrix has NaN or infinite entries.

    """

    def __init__(self, jacobian, normfunc=enorm_mpfit_careful, dtype=float):
        jac = np.asarray(jacobian, dtype=dtype)

        if jac.ndim != 2:
            raise ValueError("jacobian must be two-dimensional")

        m, n = jac.shape
        if m < n:
            raise ValueError(
                "jacobian must have at least as many rows (%d) as columns (%d)"
                % (m, n)
            )

        if anynotfinite(jac):
            raise NonFiniteError("jacobian contains nonfinite values")

        self.shape = (m, n)
        self.finfo = np.finfo(jac.dtype)
        self.enorm = normfunc
        self._packed = jac.T.copy()
        self.permutation, self.rdiag, self.column_norms = _qr_factor_packed(
            self._packed, normfunc, self.finfo
        )

    def unpack(self):
        """Return the explicit factors (q, r).

        q is m-by-m and orthogonal, r is m-by-n and upper trapezoidal, and
        ``jac[:,self.permutation] == np.dot(q, r)``. This is slow and meant
        for inspection; the minimizer only ever uses the packed form.

        """
        m, n = self.shape
        packed = self._packed

        rt = np.zeros((n, m))
        for i in range(n):
            rt[i, :i] = packed[i, :i]
            rt[i, i] = self.rdiag[i]

        # Q is the product of n Householder transformations, each defined by
        # a row of the upper trapezoidal portion of the packed matrix.

        qt = np.eye(m)
        v = np.empty(m)

        for i in range(n):
            v[:] = packed[i]
            v[:i] = 0

            vv = np.dot(v, v)
            if vv == 0:
                continue  # zero column, no reflection was applied

            hhm = np.eye(m) - 2 * np.outer(v, v) / vv
            qt = np.dot(hhm, qt)

        return qt.T, rt.T

    def into_least_squares_diagonal_problem(self, residuals):
        """Combine the factorization with a residual vector.

        Parameters:
        residuals - m-vector, the residuals at the point where the Jacobian
                    was evaluated.

        Returns a :class:`trustlm.lls.LeastSquaresDiagonalProblem`.

        """
        from .lls import LeastSquaresDiagonalProblem

        m, n = self.shape
        b = np.array(residuals, dtype=self.finfo.dtype)

        if b.shape != (m,):
            raise ValueError("expected %d residuals, got shape %r" % (m, b.shape))

        a = self._packed.copy()
        qtb = np.empty(n, self.finfo.dtype)

        # Apply Q^T to the residuals, keeping the first n components, and
        # move the diagonal of R into its slot in the packed matrix.

        for j in range(n):
            ajj = a[j, j]
            if ajj != 0:
                aj = a[j, j:]
                bj = b[j:]
                b[j:] = bj - aj * np.dot(bj, aj) / ajj
            a[j, j] = self.rdiag[j]
            qtb[j] = b[j]

        return LeastSquaresDiagonalProblem(
            a[:, :n].copy(),
            self.permutation,
            self.column_norms,
            qtb,
            self.enorm,
            self.finfo,
            m=m,
        )
