import pytest

from sparse_rprop import RpropConfig


def test_defaults_are_valid():
    cfg = RpropConfig().validate()
    assert cfg.step_init == 0.1
    assert cfg.l1
    assert not cfg.replace(rho1=0.0).l1


@pytest.mark.parametrize(
    "changes",
    [
        dict(step_min=0.0),
        dict(step_min=2.0, step_max=1.0),
        dict(step_inc=1.0),
        dict(step_dec=1.0),
        dict(step_dec=0.0),
        dict(rho1=-0.1),
        dict(max_iter=-1),
        dict(n_workers=0),
        dict(stop_window=-1),
    ],
)
def test_validate_rejects_out_of_range(changes):
    with pytest.raises(ValueError):
        RpropConfig().replace(**changes)


def test_from_env_reads_prefixed_fields():
    env = {
        "SPARSE_RPROP_N_WORKERS": "4",
        "SPARSE_RPROP_RHO1": "0",
        "SPARSE_RPROP_STEP_MAX": "10",
        "SPARSE_RPROP_MAX_ITER": "1e3",
        "SPARSE_RPROP_STOP_WINDOW": " ",
        "UNRELATED": "x",
    }
    cfg = RpropConfig.from_env(environ=env, step_inc=1.5)
    assert cfg.n_workers == 4
    assert cfg.rho1 == 0.0
    assert cfg.step_max == 10.0
    assert cfg.max_iter == 1000
    assert cfg.stop_window == RpropConfig().stop_window
    assert cfg.step_inc == 1.5


def test_from_env_reports_bad_values():
    with pytest.raises(ValueError, match="SPARSE_RPROP_N_WORKERS"):
        RpropConfig.from_env(environ={"SPARSE_RPROP_N_WORKERS": "many"})


def test_from_env_uses_process_environment(monkeypatch):
    monkeypatch.setenv("SPARSE_RPROP_MAX_ITER", "7")
    assert RpropConfig.from_env().max_iter == 7
