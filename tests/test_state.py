import logging

import pytest
import torch

from sparse_rprop import GradientBuffers, RpropState, allocate_buffers, allocate_state
from sparse_rprop import state as state_mod


def test_new_state_is_initialised():
    st = RpropState.new(5, 0.1)
    assert st.n_features == 5
    for vec in (st.gradient, st.prev_gradient, st.step, st.delta):
        assert vec.dtype == torch.float64
        assert vec.shape == (5,)
    assert st.prev_gradient.tolist() == [0.0] * 5
    assert st.step.tolist() == [0.1] * 5
    assert st.delta.tolist() == [0.0] * 5


def test_buffer_zero_aliases_state_gradient():
    st = RpropState.new(4)
    buffers = GradientBuffers(st.gradient, 3)
    assert len(buffers) == 3
    assert buffers[0] is st.gradient
    assert buffers.shared is st.gradient
    for buf in buffers.private():
        assert buf is not st.gradient
        assert buf.shape == (4,)
        assert buf.data_ptr() != st.gradient.data_ptr()
    buffers[0].fill_(2.0)
    assert st.gradient.tolist() == [2.0] * 4


def test_scoped_allocation_releases_on_error():
    captured = {}
    with pytest.raises(KeyError):
        with allocate_state(8) as st, allocate_buffers(st, 4) as bufs:
            captured["state"] = st
            captured["buffers"] = bufs
            raise KeyError("stop")
    assert captured["state"].released
    assert captured["state"].gradient.numel() == 0
    assert captured["buffers"].released
    assert len(captured["buffers"]) == 1


def test_allocation_failure_is_fatal(monkeypatch, caplog):
    def _oom(*args, **kwargs):
        raise RuntimeError("DefaultCPUAllocator: not enough memory")

    monkeypatch.setattr(state_mod.torch, "full", _oom)
    with caplog.at_level(logging.CRITICAL, logger="sparse_rprop.state"):
        with pytest.raises(SystemExit) as info:
            RpropState.new(10)
    assert "out of memory" in str(info.value)
    assert any(rec.levelno == logging.CRITICAL for rec in caplog.records)
