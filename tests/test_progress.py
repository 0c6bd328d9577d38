import json
import logging

import pytest

from sparse_rprop import CancellationFlag, LinearModel, ProgressReporter, RpropConfig


def _model(values):
    return LinearModel(len(values), theta=values)


def test_report_records_history_and_logs(caplog):
    reporter = ProgressReporter(RpropConfig(stop_window=0))
    reporter.start()
    model = _model([0.0, 1.5, -2.0])
    with caplog.at_level(logging.INFO, logger="sparse_rprop.progress"):
        assert reporter.report(model, 1, 12.5) is True
    (record,) = reporter.history
    assert record.iteration == 1
    assert record.objective == 12.5
    assert record.active == 2
    assert record.error is None
    assert record.total_s >= record.iter_s >= 0.0
    assert any("obj=12.50" in rec.getMessage() and "act=2" in rec.getMessage() for rec in caplog.records)


def test_window_criterion_stops_once_window_is_stable():
    reporter = ProgressReporter(RpropConfig(stop_window=3, stop_eps=0.1))
    model = _model([1.0])
    assert reporter.report(model, 1, 10.0)
    assert reporter.report(model, 2, 10.05)
    assert reporter.report(model, 3, 5.0)
    assert reporter.report(model, 4, 5.02)
    assert reporter.report(model, 5, 5.01) is False


def test_window_criterion_prefers_evaluator():
    errors = iter([30.0, 20.0, 20.0, 20.0])
    reporter = ProgressReporter(
        RpropConfig(stop_window=2, stop_eps=0.5), evaluate=lambda model: next(errors)
    )
    model = _model([1.0])
    assert reporter.report(model, 1, 100.0)
    assert reporter.report(model, 2, 90.0)
    assert reporter.report(model, 3, 80.0) is False
    assert reporter.history[-1].error == 20.0


def test_disabled_window_never_stops():
    reporter = ProgressReporter(RpropConfig(stop_window=0))
    model = _model([1.0])
    assert all(reporter.report(model, k, 1.0) for k in range(1, 20))


def test_cancel_flag_stops_reporting():
    flag = CancellationFlag()
    reporter = ProgressReporter(RpropConfig(stop_window=0), cancel=flag)
    model = _model([1.0])
    assert reporter.report(model, 1, 1.0)
    flag.set()
    assert reporter.report(model, 2, 1.0) is False


def test_trace_file_written_every_interval(tmp_path):
    path = tmp_path / "trace" / "rprop.jsonl"
    reporter = ProgressReporter(RpropConfig(stop_window=0), trace_path=str(path), trace_interval=2)
    model = _model([1.0, 0.0])
    for k in range(1, 6):
        reporter.report(model, k, float(k))
    lines = path.read_text(encoding="utf-8").splitlines()
    payloads = [json.loads(line) for line in lines]
    assert [p["iteration"] for p in payloads] == [2, 4]
    assert payloads[0]["active"] == 1
    assert payloads[1]["objective"] == pytest.approx(4.0)
