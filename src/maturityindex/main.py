"""CLI entrypoint for the maturity assessment client."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from .config import Settings, get_settings, load_settings
from .errors import MaturityIndexError
from .logging_setup import setup_logging
from .models import GRADES, LENSES
from .scoring import LensTotal, Report, group_by_report_group
from .service import AssessmentService
from .tiers import Tier

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}
BAR_WIDTH = 20


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(settings: Settings | None = None, model_path: Path | None = None) -> AssessmentService:
    """Create app service with the configured snapshot database and model."""
    settings = settings or get_settings()
    return AssessmentService(
        db_path=settings.snapshot_db,
        model_path=model_path or settings.model_path,
        settings=settings,
    )


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="maturityindex", description="FinOps maturity assessment")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "report"])
    parser.add_argument("--model", type=Path, help="questionnaire model JSON (default: bundled model)")
    parser.add_argument("--answers", type=Path, help="answers export to load (report command)")
    parser.add_argument("--env-file", type=Path, help="read settings from this .env file")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.env_file) if args.env_file else get_settings()
    except FileNotFoundError as exc:
        print(exc)
        return 2
    setup_logging(settings)
    if args.command == "report":
        return report_command(settings, args.model, args.answers)
    return play_shell(model_path=args.model, settings=settings)


def report_command(
    settings: Settings, model_path: Path | None, answers_path: Path | None, print_fn: PrintFn = print
) -> int:
    """Print a report for a model and an answers file, without prompting."""
    try:
        service = _service(settings, model_path)
    except (MaturityIndexError, OSError) as exc:
        print_fn(f"Could not load model: {exc}")
        return 1
    try:
        if answers_path is not None:
            try:
                service.import_answers(answers_path)
            except (MaturityIndexError, OSError) as exc:
                print_fn(f"Import failed: {exc}")
                return 1
        render_report(service.report(), print_fn)
        return 0
    finally:
        service.close()


def play_shell(
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    model_path: Path | None = None,
    settings: Settings | None = None,
) -> int:
    """Run persistent menu-driven shell."""
    try:
        service = _service(settings, model_path)
    except (MaturityIndexError, OSError) as exc:
        print_fn(f"Could not load model: {exc}")
        return 1
    try:
        if service.model_changed:
            print_fn("Note: the model changed since the last run; older snapshots may not line up.")
        try:
            while True:
                meta = service.state.meta
                print_fn(f"\n=== {service.settings.app_name} ===")
                print_fn(f"Model: {service.model.version or '-'} ({len(service.model.capabilities)} capabilities)")
                print_fn(f"Customer: {meta.customer or '-'}  Assessor: {meta.assessor or '-'}  Date: {meta.date}")
                print_fn("1) Setup")
                print_fn("2) Assess")
                print_fn("3) Report")
                print_fn("4) Export / import")
                print_fn("5) Snapshots")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _setup_flow(service, input_fn, print_fn)
                elif choice == "2":
                    _assess_flow(service, input_fn, print_fn)
                elif choice == "3":
                    render_report(service.report(), print_fn)
                elif choice == "4":
                    _transfer_flow(service, input_fn, print_fn)
                elif choice == "5":
                    _snapshot_flow(service, input_fn, print_fn)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _setup_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Choose capabilities in scope, edit header details, import a model."""
    while True:
        selected = set(service.state.selection)
        print_fn("\n=== Setup ===")
        for idx, capability in enumerate(service.model.capabilities, start=1):
            mark = "x" if capability.key in selected else " "
            group = f" ({capability.report_group})" if capability.report_group else ""
            print_fn(f"{idx:>2}) [{mark}] {capability.name}{group}")
        if not selected:
            print_fn("Nothing selected: all capabilities are in scope.")
        print_fn("a) Select all")
        print_fn("c) Clear selection")
        print_fn("m) Edit customer / assessor / date")
        print_fn("i) Import model from file")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Toggle capability: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "a":
            service.select_all()
        elif choice == "c":
            service.clear_selection()
        elif choice == "m":
            _meta_flow(service, input_fn, print_fn)
        elif choice == "i":
            _import_model_flow(service, input_fn, print_fn)
        elif choice.isdigit() and 0 <= int(choice) - 1 < len(service.model.capabilities):
            service.toggle_capability(service.model.capabilities[int(choice) - 1].key)
        else:
            print_fn("Invalid choice.")


def _meta_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Edit header details; blank input keeps the current value."""
    meta = service.state.meta
    customer = input_fn(f"Customer [{meta.customer}]: ").strip()
    assessor = input_fn(f"Assessor [{meta.assessor}]: ").strip()
    date_text = input_fn(f"Date [{meta.date}]: ").strip()
    service.update_meta(
        customer=customer or None,
        assessor=assessor or None,
        date=date_text or None,
    )
    print_fn("Details saved.")


def _import_model_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Replace the model from a JSON file."""
    path_text = input_fn("Model file path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    try:
        model = service.load_model(path_text)
    except (MaturityIndexError, OSError) as exc:
        print_fn(f"Import failed: {exc}")
        return
    print_fn(f"Loaded model {model.version or '-'} with {len(model.capabilities)} capabilities.")


def _assess_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Answer the questions of one capability at a time."""
    current = service.next_capability(None)
    if current is None:
        print_fn("The model has no capabilities.")
        return

    while True:
        capability = service.model.get(current)
        if capability is None:
            return
        progress = service.capability_progress(current)
        answers = service.state.answers.for_capability(current)
        print_fn(f"\n=== {capability.name} ({progress.answered}/{progress.total} answered) ===")
        if capability.description:
            print_fn(capability.description)
        for idx, question in enumerate(capability.questions, start=1):
            lens = question.lens.value if question.lens is not None else "-"
            label = answers.get(idx - 1)
            answer = f"{label}: {question.option_text(label)}" if label else "-"
            print_fn(f"{idx:>2}) [{lens}] {question.text}")
            print_fn(f"    -> {answer}")
        print_fn("n) Next capability")
        print_fn("p) Previous capability")
        print_fn("r) Reset this capability")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Answer question: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "n":
            current = service.next_capability(current) or current
        elif choice == "p":
            current = service.previous_capability(current) or current
        elif choice == "r":
            confirm = input_fn(f"Type YES to clear all answers for {capability.name}: ").strip()
            if confirm == "YES":
                service.clear_capability(current)
                print_fn("Answers cleared.")
            else:
                print_fn("Reset cancelled.")
        elif choice.isdigit() and 0 <= int(choice) - 1 < len(capability.questions):
            _answer_question_flow(service, current, int(choice) - 1, input_fn, print_fn)
        else:
            print_fn("Invalid choice.")


def _answer_question_flow(
    service: AssessmentService, key: str, index: int, input_fn: InputFn, print_fn: PrintFn
) -> None:
    """Pick a grade for one question."""
    capability = service.model.get(key)
    if capability is None:
        return
    question = capability.questions[index]
    print_fn(f"\n{question.text}")
    for idx, grade in enumerate(GRADES, start=1):
        text = question.options.get(grade.value, "")
        print_fn(f"{idx}) {grade.value}: {text}" if text else f"{idx}) {grade.value}")
    choice = input_fn("Choose grade (b = back): ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if not choice.isdigit() or not (0 <= int(choice) - 1 < len(GRADES)):
        print_fn("Invalid choice.")
        return
    service.set_answer(key, index, GRADES[int(choice) - 1].value)


def _transfer_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Export or import answer files."""
    print_fn("\n=== Export / Import ===")
    print_fn("1) Export answers")
    print_fn("2) Export answers by question text")
    print_fn("3) Import answers")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if choice not in {"1", "2", "3"}:
        print_fn("Invalid choice.")
        return

    path_text = input_fn("File path: ").strip()
    if not path_text:
        print_fn("File path is required.")
        return
    if choice == "3":
        try:
            summary = service.import_answers(path_text)
        except (MaturityIndexError, OSError) as exc:
            print_fn(f"Import failed: {exc}")
            return
        print_fn(f"Imported {summary.answers} answers across {summary.capabilities} capabilities.")
        if summary.dropped:
            print_fn(f"WARNING: {summary.dropped} answers were dropped because their question text changed.")
        return

    try:
        summary = service.export_answers(path_text, by_text=choice == "2")
    except OSError as exc:
        print_fn(f"Export failed: {exc}")
        return
    print_fn(f"Exported {summary.answers} answers to {summary.path}")


def _snapshot_flow(service: AssessmentService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Save, restore and delete snapshots."""
    while True:
        snapshots = service.list_snapshots()
        print_fn("\n=== Snapshots ===")
        if not snapshots:
            print_fn("No snapshots yet.")
        for idx, snapshot in enumerate(snapshots, start=1):
            who = " / ".join(part for part in (snapshot.customer, snapshot.assessor) if part) or "-"
            print_fn(f"{idx:>2}) {_format_local(snapshot.timestamp)}  v{snapshot.version}  {who}")
        print_fn("s) Save snapshot")
        print_fn("r <n>) Restore snapshot")
        print_fn("d <n>) Delete snapshot")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "s":
            service.save_snapshot()
            print_fn("Snapshot saved.")
            continue

        action, _, number = choice.partition(" ")
        number = number.strip()
        if action not in {"r", "d"} or not number.isdigit() or not (0 <= int(number) - 1 < len(snapshots)):
            print_fn("Invalid choice.")
            continue
        target = snapshots[int(number) - 1]
        if action == "r":
            if service.restore_snapshot(target.id):
                print_fn("Snapshot restored.")
                render_report(service.report(), print_fn)
            else:
                print_fn("Snapshot not found.")
        else:
            service.delete_snapshot(target.id)
            print_fn("Snapshot deleted.")


def render_report(report: Report, print_fn: PrintFn) -> None:
    """Print the overall score, capability table, lens overview and spider totals."""
    print_fn("\n=== Report ===")
    print_fn(f"Overall: {report.overall_score100:.1f} / 100  {report.tier.emoji} {report.tier.value}")
    print_fn(_thermometer(report.tier))

    if not report.capabilities:
        print_fn("No capabilities in scope.")
        return

    name_width = max(len("Capability"), max(len(item.name) for item in report.capabilities))
    header = f"{'Capability':<{name_width}} {'Total':>9} {'Score':>6} Tier"
    for group, items in group_by_report_group(report):
        print_fn(f"\n{group or 'Capabilities'}")
        print_fn(header)
        print_fn("-" * len(header))
        for item in items:
            total = f"{item.total20:g}/{item.max20:g}"
            print_fn(
                f"{item.name:<{name_width}} {total:>9} {item.score100:>6.1f} {item.tier.emoji} {item.tier.value}"
            )

    print_fn("\nLens overview (answered questions only)")
    lens_width = max(len(lens.value) for lens in LENSES)
    for total in report.lens_overview:
        print_fn(_lens_line(total, lens_width))

    print_fn("\nCapability totals (radar)")
    for point in report.spider:
        ratio = 100 * point.total / point.full_mark
        print_fn(f"{point.subject:<{name_width}} {_bar(ratio)} {point.total:g}/{point.full_mark:g}")

    for item in report.capabilities:
        print_fn(f"\n{item.name}: lenses and answers ({item.answered}/{item.question_count} answered)")
        for total in item.lens_totals:
            print_fn("  " + _lens_line(total, lens_width))
            for answer in total.answers:
                print_fn(f"      - {answer.question} -> {answer.grade}: {answer.choice} ({answer.weight20:g}/20)")


def _lens_line(total: LensTotal, lens_width: int) -> str:
    """One lens bar with its answered-only percentage."""
    return f"{total.lens.value:<{lens_width}} {_bar(total.percent)} {total.percent:5.1f}%  ({total.answered} answered)"


def _bar(percent: float) -> str:
    """Fixed-width text bar for a 0-100 value."""
    filled = round(max(0.0, min(100.0, percent)) / 100 * BAR_WIDTH)
    return "[" + "#" * filled + "." * (BAR_WIDTH - filled) + "]"


def _thermometer(current: Tier) -> str:
    """One-line tier scale with the current tier marked."""
    return " > ".join(f"*{tier.value}*" if tier is current else tier.value for tier in Tier)


def _format_local(timestamp: str) -> str:
    """Convert an ISO timestamp to local human-readable datetime."""
    try:
        dt = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
