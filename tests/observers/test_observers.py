import json
import logging

from clover.observers.console import ConsoleObserver
from clover.observers.dispatcher import EventBus, Observer
from clover.observers.events import MachineBooted, NodeConverged, NodeConvergeFailed, new_ctx
from clover.observers.jsonfile import JsonFileObserver
from clover.observers.logger import LoggerObserver


class Capture(Observer):
    def __init__(self): self.events = []
    def notify(self, event): self.events.append(event)


class Broken(Observer):
    def notify(self, event): raise RuntimeError("observer bug")


def test_broken_observer_does_not_stop_dispatch():
    cap = Capture()
    bus = EventBus([Broken(), cap])
    ev = MachineBooted(**new_ctx("web", "run-1"))
    bus.emit(ev)
    assert cap.events == [ev]


def test_new_ctx_shares_run_id():
    a = new_ctx("web", "run-1")
    b = new_ctx("db", "run-1")
    assert a["run_id"] == b["run_id"] == "run-1"
    assert a["ts"].endswith("Z")
    assert new_ctx("web")["run_id"] != new_ctx("web")["run_id"]


def test_jsonfile_observer_appends_lines(tmp_path):
    ob = JsonFileObserver.for_run("run-1", tmp_path / "logs")
    path = tmp_path / "logs" / "run-1.jsonl"
    assert ob.path == path
    ob.notify(MachineBooted(**new_ctx("web", "run-1")))
    ob.notify(NodeConverged(**new_ctx("web", "run-1"), duration_ms=12))

    rows = [json.loads(l) for l in path.read_text().splitlines()]
    assert [r["event"] for r in rows] == ["MachineBooted", "NodeConverged"]
    assert rows[1]["duration_ms"] == 12
    assert rows[0]["node"] == "web"


def test_console_observer_markers(capsys):
    ob = ConsoleObserver()
    ob.notify(MachineBooted(**new_ctx("web", "r")))
    ob.notify(NodeConverged(**new_ctx("web", "r"), duration_ms=1))
    ob.notify(NodeConvergeFailed(**new_ctx("db", "r"), stage="files", error="upload failed"))

    out, err = capsys.readouterr()
    assert out == "*** [web] booted\n*** Converged node web\n"
    assert "*** [db] failed: upload failed" in err


def test_logger_observer_logs_at_debug(caplog):
    logger = logging.getLogger("observer-test")
    ob = LoggerObserver(logger)
    with caplog.at_level(logging.DEBUG, logger="observer-test"):
        ob.notify(NodeConvergeFailed(**new_ctx("db", "r"), stage="machine", error="boom"))
    assert caplog.messages == ["[db] event NodeConvergeFailed stage=machine error=boom"]


def test_jsonfile_default_location(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    ob = JsonFileObserver.for_run("abc")
    assert ob.path == tmp_path / ".clover" / "logs" / "abc.jsonl"


def test_subscribe_adds_observer():
    cap = Capture()
    bus = EventBus()
    bus.subscribe(cap)
    bus.emit(MachineBooted(**new_ctx("web", "r")))
    assert len(cap.events) == 1
