import json
from pathlib import Path
from typing import Any

import pytest

import maturityindex.main as main
from maturityindex.answers import EMPTY_ANSWERS
from maturityindex.config import Settings
from maturityindex.model_loader import parse_model
from maturityindex.scoring import score
from maturityindex.service import AssessmentService


@pytest.fixture
def service(settings: Settings, model_file: Path) -> AssessmentService:
    return AssessmentService(":memory:", model_path=model_file, settings=settings)


def _patch_service(monkeypatch: Any, service: AssessmentService) -> None:
    monkeypatch.setattr(main, "_service", lambda *args, **kwargs: service)


def _script(*answers: str) -> Any:
    inputs = iter(answers)
    return lambda _: next(inputs)


def test_run_enters_play_shell(monkeypatch: Any) -> None:
    monkeypatch.setattr(main, "setup_logging", lambda settings: None)
    monkeypatch.setattr(main, "play_shell", lambda **kwargs: 0)
    assert main.run([]) == 0


def test_run_report_command_receives_paths(monkeypatch: Any, model_file: Path) -> None:
    seen: dict[str, object] = {}
    monkeypatch.setattr(main, "setup_logging", lambda settings: None)

    def fake_report(settings: Settings, model_path: Path | None, answers_path: Path | None) -> int:
        seen.update(model=model_path, answers=answers_path)
        return 0

    monkeypatch.setattr(main, "report_command", fake_report)
    assert main.run(["report", "--model", str(model_file), "--answers", "a.json"]) == 0
    assert seen == {"model": model_file, "answers": Path("a.json")}


def test_run_missing_env_file(tmp_path: Path) -> None:
    assert main.run(["--env-file", str(tmp_path / "missing.env")]) == 2


def test_play_shell_quit(monkeypatch: Any, service: AssessmentService) -> None:
    _patch_service(monkeypatch, service)
    outputs: list[str] = []
    code = main.play_shell(input_fn=_script("q"), print_fn=outputs.append)
    assert code == 0
    assert any("Model: 2.0 (3 capabilities)" in line for line in outputs)


def test_play_shell_invalid_choice_then_quit(monkeypatch: Any, service: AssessmentService) -> None:
    _patch_service(monkeypatch, service)
    outputs: list[str] = []
    code = main.play_shell(input_fn=_script("9", "q"), print_fn=outputs.append)
    assert code == 0
    assert any("Invalid choice." in line for line in outputs)


def test_play_shell_reports_model_change(monkeypatch: Any, service: AssessmentService) -> None:
    service.model_changed = True
    _patch_service(monkeypatch, service)
    outputs: list[str] = []
    main.play_shell(input_fn=_script("q"), print_fn=outputs.append)
    assert any("model changed since the last run" in line for line in outputs)


def test_play_shell_model_load_failure(monkeypatch: Any, settings: Settings, tmp_path: Path) -> None:
    outputs: list[str] = []
    code = main.play_shell(
        input_fn=_script("q"), print_fn=outputs.append, model_path=tmp_path / "missing.json", settings=settings
    )
    assert code == 1
    assert any("Could not load model" in line for line in outputs)


def test_play_shell_calls_menu_handlers(monkeypatch: Any, service: AssessmentService) -> None:
    _patch_service(monkeypatch, service)
    called = {"setup": 0, "assess": 0, "transfer": 0, "snapshots": 0}
    monkeypatch.setattr(main, "_setup_flow", lambda *args: called.__setitem__("setup", 1))
    monkeypatch.setattr(main, "_assess_flow", lambda *args: called.__setitem__("assess", 1))
    monkeypatch.setattr(main, "_transfer_flow", lambda *args: called.__setitem__("transfer", 1))
    monkeypatch.setattr(main, "_snapshot_flow", lambda *args: called.__setitem__("snapshots", 1))

    outputs: list[str] = []
    code = main.play_shell(input_fn=_script("1", "2", "3", "4", "5", "q"), print_fn=outputs.append)
    assert code == 0
    assert called == {"setup": 1, "assess": 1, "transfer": 1, "snapshots": 1}
    assert any("=== Report ===" in line for line in outputs)


def test_play_shell_quit_from_nested_flow_closes_service(monkeypatch: Any, service: AssessmentService) -> None:
    closed = {"value": False}
    monkeypatch.setattr(service, "close", lambda: closed.__setitem__("value", True))
    _patch_service(monkeypatch, service)
    code = main.play_shell(input_fn=_script("1", "q"), print_fn=lambda _: None)
    assert code == 0
    assert closed["value"] is True


def test_setup_flow_toggles_selection(service: AssessmentService) -> None:
    outputs: list[str] = []
    main._setup_flow(service, _script("1", "b"), outputs.append)
    assert service.state.selection == ("forecasting", "empty")

    main._setup_flow(service, _script("c", "b"), outputs.append)
    assert service.state.selection == ()
    assert any("all capabilities are in scope" in line for line in outputs)

    main._setup_flow(service, _script("a", "x", "b"), outputs.append)
    assert service.state.selection == ("allocation", "forecasting", "empty")
    assert any("Invalid choice." in line for line in outputs)


def test_setup_flow_edits_meta(service: AssessmentService) -> None:
    outputs: list[str] = []
    main._setup_flow(service, _script("m", "Acme", "", "2026-03-01", "b"), outputs.append)
    meta = service.state.meta
    assert (meta.customer, meta.assessor, meta.date) == ("Acme", "", "2026-03-01")
    assert "Details saved." in outputs


def test_setup_flow_imports_model(service: AssessmentService, tmp_path: Path) -> None:
    replacement = tmp_path / "replacement.json"
    replacement.write_text(json.dumps({"version": "9", "capabilities": [{"key": "solo", "questions": []}]}))
    outputs: list[str] = []
    script = _script("i", "", "i", str(tmp_path / "nope.json"), "i", str(replacement), "b")
    main._setup_flow(service, script, outputs.append)
    assert "File path is required." in outputs
    assert any(line.startswith("Import failed") for line in outputs)
    assert "Loaded model 9 with 1 capabilities." in outputs
    assert service.model.keys == ["solo"]


def test_setup_flow_quit(service: AssessmentService) -> None:
    with pytest.raises(main.QuitApp):
        main._setup_flow(service, _script("q"), lambda _: None)


def test_assess_flow_answers_questions(service: AssessmentService) -> None:
    outputs: list[str] = []
    main._assess_flow(service, _script("1", "4", "2", "5", "b"), outputs.append)
    answers = service.state.answers.for_capability("allocation")
    assert dict(answers) == {0: "Run", 1: "Fly"}
    assert any("=== Allocation (1/2 answered) ===" in line for line in outputs)
    assert any("-> Run: Q0 at Run" in line for line in outputs)


def test_assess_flow_navigates_between_capabilities(service: AssessmentService) -> None:
    outputs: list[str] = []
    main._assess_flow(service, _script("n", "1", "1", "p", "p", "b"), outputs.append)
    assert service.state.answers.get_answer("forecasting", 0) == "Pre-crawl"
    headings = [line for line in outputs if line.startswith("\n=== ")]
    assert [line.split(" (")[0] for line in headings] == [
        "\n=== Allocation",
        "\n=== Forecasting",
        "\n=== Forecasting",
        "\n=== Allocation",
        "\n=== Empty",
    ]


def test_assess_flow_reset_requires_confirmation(service: AssessmentService) -> None:
    service.set_answer("allocation", 0, "Walk")
    outputs: list[str] = []
    main._assess_flow(service, _script("r", "no", "r", "YES", "b"), outputs.append)
    assert "Reset cancelled." in outputs
    assert "Answers cleared." in outputs
    assert dict(service.state.answers.for_capability("allocation")) == {}


def test_assess_flow_invalid_grade(service: AssessmentService) -> None:
    outputs: list[str] = []
    main._assess_flow(service, _script("1", "9", "7", "b"), outputs.append)
    assert outputs.count("Invalid choice.") == 2
    assert service.state.answers == EMPTY_ANSWERS


def test_assess_flow_quit(service: AssessmentService) -> None:
    with pytest.raises(main.QuitApp):
        main._assess_flow(service, _script("q"), lambda _: None)


def test_transfer_flow_export(service: AssessmentService, tmp_path: Path) -> None:
    service.set_answer("allocation", 1, "Walk")
    target = tmp_path / "export.json"
    outputs: list[str] = []
    main._transfer_flow(service, _script("2", str(target)), outputs.append)
    assert f"Exported 1 answers to {target}" in outputs
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["answersByText"]["allocation"]["items"][0]["question"] == "Q1"


def test_transfer_flow_import_warns_about_dropped_answers(service: AssessmentService, tmp_path: Path) -> None:
    source = tmp_path / "by-text.json"
    items = [{"question": "Q0", "chosenLevel": "Run"}, {"question": "gone", "chosenLevel": "Fly"}]
    source.write_text(json.dumps({"answersByText": {"allocation": {"name": "Allocation", "items": items}}}))
    outputs: list[str] = []
    main._transfer_flow(service, _script("3", str(source)), outputs.append)
    assert "Imported 1 answers across 1 capabilities." in outputs
    assert any(line.startswith("WARNING: 1 answers were dropped") for line in outputs)


def test_transfer_flow_import_failure_and_invalid_choice(service: AssessmentService, tmp_path: Path) -> None:
    source = tmp_path / "broken.json"
    source.write_text("{not json")
    outputs: list[str] = []
    main._transfer_flow(service, _script("3", str(source)), outputs.append)
    main._transfer_flow(service, _script("1", ""), outputs.append)
    main._transfer_flow(service, _script("7"), outputs.append)
    assert any(line.startswith("Import failed: Invalid JSON") for line in outputs)
    assert "File path is required." in outputs
    assert "Invalid choice." in outputs
    with pytest.raises(main.QuitApp):
        main._transfer_flow(service, _script("q"), outputs.append)


def test_snapshot_flow_save_restore_delete(service: AssessmentService) -> None:
    service.update_meta(customer="Acme")
    service.set_answer("allocation", 0, "Fly")
    outputs: list[str] = []

    def scripted(prompt: str) -> str:
        answer = next(steps)
        if answer == "r 1":
            service.clear_capability("allocation")
        return answer

    steps = iter(["s", "r 1", "x 3", "d 1", "b"])
    main._snapshot_flow(service, scripted, outputs.append)
    assert "Snapshot saved." in outputs
    assert "Snapshot restored." in outputs
    assert "Snapshot deleted." in outputs
    assert "Invalid choice." in outputs
    assert any("Acme" in line for line in outputs)
    assert outputs.count("No snapshots yet.") == 2
    assert service.state.answers.get_answer("allocation", 0) == "Fly"
    assert service.list_snapshots() == []


def test_render_report(model: Any) -> None:
    outputs: list[str] = []
    report = score(model, ["allocation"], {"allocation": {0: "Run", 1: "Fly"}})
    main.render_report(report, outputs.append)
    assert f"Overall: 87.5 / 100  {report.tier.emoji} Fly" in outputs
    assert "Pre-crawl > Crawl > Walk > Run > *Fly*" in outputs
    assert "\nInform" in outputs
    assert any(line.startswith("Allocation") and "35/40" in line for line in outputs)
    assert any(line.startswith("Process") and "75.0%" in line for line in outputs)


def test_render_report_without_capabilities() -> None:
    outputs: list[str] = []
    main.render_report(score(parse_model({"capabilities": []}), [], EMPTY_ANSWERS), outputs.append)
    assert "No capabilities in scope." in outputs


def test_report_command(settings: Settings, model_file: Path, tmp_path: Path) -> None:
    answers = tmp_path / "answers.json"
    answers.write_text(json.dumps({"answersByCap": {"forecasting": {"0": "Fly", "1": "Fly"}}}))
    outputs: list[str] = []
    assert main.report_command(settings, model_file, answers, print_fn=outputs.append) == 0
    assert any(line.startswith("Overall: 16.7 / 100") for line in outputs)


def test_report_command_errors(settings: Settings, model_file: Path, tmp_path: Path) -> None:
    outputs: list[str] = []
    assert main.report_command(settings, tmp_path / "missing.json", None, print_fn=outputs.append) == 1
    assert main.report_command(settings, model_file, tmp_path / "missing.json", print_fn=outputs.append) == 1
    assert any(line.startswith("Could not load model") for line in outputs)
    assert any(line.startswith("Import failed") for line in outputs)


def test_format_local_handles_invalid_timestamp() -> None:
    assert main._format_local("not-a-date") == "not-a-date"


def test_play_shell_survives_non_utf8_import(monkeypatch: Any, service: AssessmentService, tmp_path: Path) -> None:
    _patch_service(monkeypatch, service)
    bad = tmp_path / "latin1.json"
    bad.write_bytes(b'{"\xff": 1}')
    outputs: list[str] = []
    script = _script("4", "3", str(bad), "1", "i", str(bad), "b", "q")
    assert main.play_shell(input_fn=script, print_fn=outputs.append) == 0
    failures = [line for line in outputs if line.startswith("Import failed:") and "not UTF-8" in line]
    assert len(failures) == 2


def test_render_report_lists_lenses_and_answers_per_capability(model: Any) -> None:
    outputs: list[str] = []
    answers = {"allocation": {0: "Run"}, "forecasting": {0: "Fly", 1: "Walk", 2: "Crawl"}}
    report = score(model, [], answers)
    main.render_report(report, outputs.append)

    start = outputs.index("\nForecasting: lenses and answers (3/4 answered)")
    section = outputs[start + 1 : start + 9]
    assert section[0].startswith("  Knowledge") and "75.0%  (2 answered)" in section[0]
    assert section[1] == "      - F0 -> Fly: F0 at Fly (20/20)"
    assert section[2] == "      - F1 -> Walk: F1 at Walk (10/20)"
    assert section[3].startswith("  Process") and "0.0%  (0 answered)" in section[3]
    assert not any("F2 ->" in line for line in outputs)
    assert "\nAllocation: lenses and answers (1/2 answered)" in outputs
    assert "\nEmpty: lenses and answers (0/0 answered)" in outputs
