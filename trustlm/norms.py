# -*- mode: python; coding: utf-8 -*-
# Copyright (C) 1997-2011 Craig Markwardt
# Copyright 2003 Mark Rivers
# Copyright 2006, 2009-2011 (inclusive) Nadia Dencheva
# Copyright 2011-2017 (inclusive) Peter Williams
#
# This software is provided as is without any warranty whatsoever. Permission
# to use, copy, modify, and distribute modified or unmodified copies is
# granted, provided this copyright and disclaimer are included unchanged.

"""trustlm.norms - Euclidean norms for the least-squares machinery

Every norm function has the signature ``enorm(v, finfo)``, where *v* is a
1-D Numpy array and *finfo* a :class:`numpy.finfo` describing the working
floating-point type.

enorm_fast
  The naive implementation. Fast but sensitive to under/overflows.
enorm_mpfit_careful
  Rescales when over- or underflow is possible. The default.
enorm_minpack
  Emulates the MINPACK accumulation into three magnitude bands.

"""

__all__ = "anynotfinite enorm_fast enorm_mpfit_careful enorm_minpack lookup_norm".split()

import numpy as np


def anynotfinite(x):
    return not np.all(np.isfinite(x))


def enorm_fast(v, finfo):
    return np.sqrt(np.dot(v, v))


def enorm_mpfit_careful(v, finfo):
    # "This is hopefully a compromise between speed and robustness.
    # Need to do this because of the possibility of over- or under-
    # flow."

    if v.size == 0:
        return finfo.dtype.type(0.0)

    mx = max(abs(v.max()), abs(v.min()))

    if mx == 0:
        return v[0] * 0.0  # preserve type
    if not np.isfinite(mx):
        raise ValueError("tried to compute norm of a vector with nonfinite values")
    if mx > finfo.max / v.size or mx < finfo.tiny * v.size:
        return mx * np.sqrt(np.dot(v / mx, v / mx))

    return np.sqrt(np.dot(v, v))


def enorm_minpack(v, finfo):
    rdwarf = 3.834e-20
    rgiant = 1.304e19
    agiant = rgiant / max(v.size, 1)

    s1 = s2 = s3 = x1max = x3max = 0.0

    for i in range(v.size):
        xabs = abs(v[i])

        if xabs > rdwarf and xabs < agiant:
            s2 += xabs**2
        elif xabs <= rdwarf:
            if xabs <= x3max:
                if xabs != 0.0:
                    s3 += (xabs / x3max) ** 2
            else:
                s3 = 1 + s3 * (x3max / xabs) ** 2
                x3max = xabs
        else:
            if xabs <= x1max:
                s1 += (xabs / x1max) ** 2
            else:
                s1 = 1.0 + s1 * (x1max / xabs) ** 2
                x1max = xabs

    if s1 != 0.0:
        return x1max * np.sqrt(s1 + (s2 / x1max) / x1max)

    if s2 == 0.0:
        return x3max * np.sqrt(s3)

    if s2 >= x3max:
        return np.sqrt(s2 * (1 + (x3max / s2) * (x3max * s3)))

    return np.sqrt(x3max * ((s2 / x3max) + (x3max * s3)))


_norms_by_name = {
    "fast": enorm_fast,
    "careful": enorm_mpfit_careful,
    "minpack": enorm_minpack,
}


def lookup_norm(name):
    """Return the norm function called *name*: "fast", "careful" or "minpack"."""
    try:
        return _norms_by_name[name]
    except KeyError:
        raise ValueError('unrecognized norm "%s"' % name)
