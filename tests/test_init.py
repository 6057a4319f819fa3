# -*- mode: python; coding: utf-8 -*-
# Copyright 2014-2016 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

import pytest

from trustlm import Holder, LMError


def test_lmerror_formatting():
    assert str(LMError("plain %s")) == "plain %s"
    assert str(LMError("value %r, %d", "a", 3)) == "value 'a', 3"
    assert repr(LMError("x")) == "LMError('x')"


def test_holder():
    h = Holder(b=2, a="x")
    assert h.a == "x"
    assert h.set(c=3) is h
    assert h.set_one("d", 4.5) is h
    assert h.to_dict() == {"a": "x", "b": 2, "c": 3, "d": 4.5}

    assert str(h) == "{a=x, b=2, c=3, d=4.5}"
    assert repr(h) == "Holder(a='x', b=2, c=3, d=4.5)"
    assert h.to_pretty() == "a = x\nb = 2\nc = 3\nd = 4.5"
    assert h.to_pretty("repr").splitlines()[0] == "a = 'x'"

    with pytest.raises(ValueError):
        h.to_pretty("json")
