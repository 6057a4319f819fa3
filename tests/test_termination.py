# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

import pytest

from trustlm.termination import (
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


def test_equality():
    assert Orthogonal() == Orthogonal()
    assert Numerical("jacobian") == Numerical("jacobian")
    assert Numerical("jacobian") != Numerical("subproblem x")
    assert Numerical("jacobian") != User("jacobian")
    assert Converged(ftol=True) == Converged(ftol=True, xtol=False)
    assert Converged(ftol=True) != Converged(ftol=True, xtol=True)
    assert MaxIterations() != NoParameters()


def test_hashable():
    reasons = {Orthogonal(), Orthogonal(), Numerical("jacobian"), Numerical("jacobian")}
    assert len(reasons) == 2


def test_immutable():
    r = Numerical("jacobian")

    with pytest.raises(AttributeError):
        r.stage = "residuals"

    with pytest.raises(AttributeError):
        Orthogonal().extra = 1


def test_successful():
    assert Orthogonal().successful
    assert ResidualsZero().successful
    assert Converged(xtol=True).successful

    for r in [
        Numerical("jacobian"),
        User("residuals"),
        NoImprovementPossible("gtol"),
        MaxIterations(),
        NoParameters(),
        NotEnoughResiduals(),
        WrongDimensions("jacobian"),
    ]:
        assert not r.successful


def test_validation():
    with pytest.raises(ValueError):
        Converged()

    with pytest.raises(ValueError):
        NoImprovementPossible("maxiter")


def test_repr():
    assert repr(Orthogonal()) == "Orthogonal()"
    assert repr(Numerical("jacobian")) == "Numerical(stage='jacobian')"
    assert repr(Converged(ftol=True)) == "Converged(ftol=True, xtol=False)"
