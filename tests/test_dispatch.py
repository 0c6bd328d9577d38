import threading

import pytest
import torch

from sparse_rprop import (
    Job,
    RpropConfig,
    RpropState,
    UpdateTask,
    dispatch_diagnostics,
    partition,
    reset_dispatch_metrics,
    rprop_update_range,
    rprop_worker,
    run_parallel,
)


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_dispatch_metrics()
    yield
    reset_dispatch_metrics()


def test_run_parallel_calls_each_worker_once():
    seen = []
    lock = threading.Lock()

    def work(job, worker_id, n_workers, arg):
        assert isinstance(job, Job)
        assert job.n_workers == n_workers == 4
        with lock:
            seen.append((worker_id, arg))

    run_parallel(work, 4, ["a", "b", "c", "d"])
    assert sorted(seen) == [(0, "a"), (1, "b"), (2, "c"), (3, "d")]


def test_single_worker_runs_on_calling_thread():
    caller = threading.get_ident()
    threads = []

    def work(job, worker_id, n_workers, arg):
        threads.append(threading.get_ident())

    run_parallel(work, 1, [None])
    assert threads == [caller]


def test_run_parallel_joins_before_reraising():
    finished = []

    def work(job, worker_id, n_workers, arg):
        if worker_id == 1:
            raise RuntimeError("boom")
        finished.append(worker_id)

    with pytest.raises(RuntimeError, match="boom"):
        run_parallel(work, 3, [None] * 3)
    assert sorted(finished) == [0, 2]
    stats = dispatch_diagnostics()
    (entry,) = stats.values()
    assert entry["failures"] == 1
    assert entry["last_error"] == "RuntimeError: boom"


def test_run_parallel_rejects_mismatched_arguments():
    with pytest.raises(ValueError):
        run_parallel(lambda *a: None, 2, [None])
    with pytest.raises(ValueError):
        run_parallel(lambda *a: None, 0, [])


def test_dispatch_diagnostics_tracks_each_worker_count():
    def work(job, worker_id, n_workers, arg):
        pass

    for _ in range(3):
        run_parallel(work, 2, [None, None])
    run_parallel(work, 4, [None] * 4)
    stats = dispatch_diagnostics()
    two = next(v for k, v in stats.items() if k.endswith("work[w=2]"))
    four = next(v for k, v in stats.items() if k.endswith("work[w=4]"))
    assert two["calls"] == 3
    assert two["failures"] == 0
    assert two["n_workers"] == 2
    assert two["mean_wall_ms"] is not None
    assert four["calls"] == 1
    if four["balance"] is not None:
        assert 0.0 < four["balance"] <= 1.0 + 1e-9


def _random_run(n, rho1, seed):
    gen = torch.Generator().manual_seed(seed)
    cfg = RpropConfig(step_min=1e-6, step_max=5.0, rho1=rho1)
    theta = torch.randn(n, generator=gen, dtype=torch.float64)
    theta[::4] = 0.0
    state = RpropState.new(n, 0.1)
    state.prev_gradient.copy_(torch.randn(n, generator=gen, dtype=torch.float64))
    state.delta.copy_(torch.randn(n, generator=gen, dtype=torch.float64) * 0.05)
    grads = [torch.randn(n, generator=gen, dtype=torch.float64) for _ in range(4)]
    return cfg, theta, state, grads


@pytest.mark.parametrize("n_workers", [1, 2, 3, 7, 16])
@pytest.mark.parametrize("rho1", [0.0, 0.3])
def test_parallel_dispatch_is_bit_identical_to_sequential(n_workers, rho1):
    n = 1001
    cfg, theta_seq, state_seq, grads = _random_run(n, rho1, seed=3)
    theta_par = theta_seq.clone()
    state_par = state_seq.snapshot()
    whole = partition(n, 1)[0]

    for grad in grads:
        state_seq.gradient.copy_(grad)
        state_par.gradient.copy_(grad)
        rprop_update_range(theta_seq, state_seq, cfg, whole)
        task = UpdateTask(theta=theta_par, state=state_par, config=cfg)
        run_parallel(rprop_worker, n_workers, [task] * n_workers)

    assert torch.equal(theta_seq, theta_par)
    assert torch.equal(state_seq.step, state_par.step)
    assert torch.equal(state_seq.delta, state_par.delta)
    assert torch.equal(state_seq.gradient, state_par.gradient)
    assert torch.equal(state_seq.prev_gradient, state_par.prev_gradient)
