import json
import sqlite3

from provisioner.persistence import SQLiteStateStore
from provisioner.schemas import RunStatus, StepResult, StepStatus


def test_round_trip_keeps_step_order(tmp_path):
    store = SQLiteStateStore(tmp_path / "state.sqlite")
    store.start_run("fp", "run-1")
    store.append("fp", StepResult(action_name="a", status=StepStatus.SUCCEEDED, duration_seconds=1.5))
    store.append("fp", StepResult(action_name="b", status=StepStatus.FAILED, error="Timeout: slow"))
    store.finish_run("fp", "run-1", RunStatus.FAILED)

    record = store.load("fp")
    assert record.run_id == "run-1"
    assert record.status is RunStatus.FAILED
    assert [(step.action_name, step.status) for step in record.steps] == [
        ("a", StepStatus.SUCCEEDED),
        ("b", StepStatus.FAILED),
    ]
    assert record.steps[0].duration_seconds == 1.5


def test_load_returns_latest_run_only(tmp_path):
    store = SQLiteStateStore(tmp_path / "state.sqlite")
    store.start_run("fp", "run-1")
    store.append("fp", StepResult(action_name="old", status=StepStatus.SUCCEEDED))
    store.start_run("fp", "run-2")
    store.append("fp", StepResult(action_name="new", status=StepStatus.SKIPPED))

    record = store.load("fp")
    assert record.run_id == "run-2"
    assert [step.action_name for step in record.steps] == ["new"]
    assert store.load("other") is None


def test_clear_forgets_only_one_fingerprint(tmp_path):
    store = SQLiteStateStore(tmp_path / "state.sqlite")
    for fingerprint in ("fp1", "fp2"):
        store.start_run(fingerprint, f"run-{fingerprint}")
        store.append(fingerprint, StepResult(action_name="a", status=StepStatus.SUCCEEDED))

    store.clear("fp1")
    assert store.load("fp1") is None
    assert store.load("fp2") is not None


def test_corrupt_database_is_quarantined(tmp_path, caplog):
    path = tmp_path / "state.sqlite"
    path.write_bytes(b"this is not a sqlite database" * 100)

    store = SQLiteStateStore(path)

    quarantined = list(tmp_path.glob("state.sqlite.corrupt-*"))
    assert len(quarantined) == 1
    assert store.load("fp") is None
    assert "unreadable" in caplog.text


def test_unreadable_rows_count_as_no_previous_run(tmp_path, caplog):
    path = tmp_path / "state.sqlite"
    store = SQLiteStateStore(path)
    store.start_run("fp", "run-1")
    with sqlite3.connect(path) as conn:
        conn.execute("UPDATE runs SET status = 'exploded'")

    assert store.load("fp") is None
    assert "Ignoring unreadable state" in caplog.text


def test_export_is_json(tmp_path):
    store = SQLiteStateStore(tmp_path / "state.sqlite")
    assert json.loads(store.export("fp")) is None

    store.start_run("fp", "run-1")
    store.append("fp", StepResult(action_name="a", status=StepStatus.SUCCEEDED))
    payload = json.loads(store.export("fp"))
    assert payload["run_id"] == "run-1"
    assert payload["steps"][0]["status"] == "succeeded"


def test_completed_actions_replays_every_run(tmp_path):
    store = SQLiteStateStore(tmp_path / "state.sqlite")
    store.start_run("fp", "run-1")
    store.append("fp", StepResult(action_name="seed", status=StepStatus.SUCCEEDED))
    store.append("fp", StepResult(action_name="clone", status=StepStatus.SUCCEEDED))
    store.start_run("fp", "run-2")
    store.append("fp", StepResult(action_name="seed", status=StepStatus.UNREACHED))
    store.append("fp", StepResult(action_name="clone", status=StepStatus.FAILED, error="CommandFailed: x"))
    store.start_run("other", "run-3")
    store.append("other", StepResult(action_name="build", status=StepStatus.SKIPPED))

    assert store.completed_actions("fp") == {"seed"}
    assert store.completed_actions("other") == {"build"}
    assert store.completed_actions("missing") == set()
