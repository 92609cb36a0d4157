"""
equilibrium CLI - run the coherence engine over a session file.

Usage:
    equilibrium run FILE [--timeout-ms N] [--weights A,C,P] [--json]
    equilibrium conflicts FILE [--json]
    equilibrium simulate FILE PATCH_FILE [--weights A,C,P] [--json]
    equilibrium suggest FILE [--max N] [--json]

FILE is a JSON session document (``judgments``, ``principles``, ``links``
and optionally ``id``). PATCH_FILE holds the same keys; any key it names
replaces that collection.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from equilibrium.config import get_settings
from equilibrium.engine import detect_conflicts, run_coherence, score, simulate_patch
from equilibrium.protocols import EquilibriumError
from equilibrium.types import CoherenceReport, CoherenceWeights, Session, make_id, utc_now
from equilibrium.validation import patch_from_input

logger = logging.getLogger(__name__)


def load_json(path: str) -> dict:
    """Read a JSON object from ``path`` (``-`` for stdin)."""
    if path == "-":
        data = json.load(sys.stdin)
    else:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def load_session(path: str) -> Session:
    """Build a validated session from a JSON file."""
    data = load_json(path)
    now = utc_now()
    patch = patch_from_input(
        {key: data.get(key) or [] for key in ("judgments", "principles", "links")}, now
    )
    return Session(
        id=str(data.get("id") or make_id("wre")),
        judgments=patch.judgments or (),
        principles=patch.principles or (),
        links=patch.links or (),
        created_at=now,
        updated_at=now,
    )


def parse_weights(value: Optional[str]) -> Optional[CoherenceWeights]:
    """Parse ``A,C,P`` into weights."""
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 3:
        raise ValueError("--weights takes three comma-separated numbers: A,C,P")
    agreement, confidence, parsimony = (float(p) for p in parts)
    return CoherenceWeights(
        agreement_ratio=agreement,
        avg_confidence_supported=confidence,
        parsimony_penalty=parsimony,
    )


def print_report(report: CoherenceReport) -> None:
    b = report.breakdown
    print(f"Coherence: {report.coherence_score:.2f}/100")
    print(
        f"  agreement={b.agreement_ratio:.3f}  "
        f"support-confidence={b.avg_confidence_supported:.3f}  "
        f"parsimony={b.parsimony_penalty:.3f}"
    )
    if report.timed_out:
        print("  (timed out: suggestions may be incomplete)")

    if report.minimal_conflicts:
        print(f"\nConflicts ({len(report.minimal_conflicts)}):")
        for conflict in report.minimal_conflicts:
            print(f"  [{', '.join(conflict.ids)}] {conflict.reason}")
    else:
        print("\nNo conflicts found.")

    if report.suggestions:
        print("\nSuggestions:")
        for i, s in enumerate(report.suggestions, 1):
            print(f"  {i}. {s.title} ({s.effect_estimate:+.2f} -> {s.predicted_coherence:.2f})")
            print(f"     {s.explanation}")


def cmd_run(args):
    session = load_session(args.file)
    timeout_ms = args.timeout_ms
    if timeout_ms is None:
        timeout_ms = get_settings().default_timeout_ms
    report = run_coherence(session, parse_weights(args.weights), timeout_ms)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)


def cmd_conflicts(args):
    session = load_session(args.file)
    conflicts = detect_conflicts(session)
    if args.json:
        print(json.dumps([c.to_dict() for c in conflicts], indent=2))
        return
    if not conflicts:
        print("No conflicts found.")
        return
    for conflict in conflicts:
        print(f"[{', '.join(conflict.ids)}] {conflict.reason}")


def cmd_simulate(args):
    session = load_session(args.file)
    patch = patch_from_input(load_json(args.patch_file))
    weights = parse_weights(args.weights)

    before = score(session, weights).score
    after = score(simulate_patch(session, patch), weights).score
    if args.json:
        result = {"baseline": before, "predicted": after, "delta": after - before}
        print(json.dumps(result, indent=2))
    else:
        print(f"Baseline:  {before:.2f}")
        print(f"Predicted: {after:.2f} ({after - before:+.2f})")


def cmd_suggest(args):
    from equilibrium.assist import RevisionAssistant

    session = load_session(args.file)
    conflicts = detect_conflicts(session)
    assistant = RevisionAssistant()
    results = []
    for conflict in conflicts:
        proposals = assistant.suggest_revisions(session, conflict, args.max)
        results.append((conflict, proposals))

    if args.json:
        print(
            json.dumps(
                [
                    {
                        "conflict": conflict.to_dict(),
                        "proposals": [p.model_dump(mode="json") for p in proposals],
                    }
                    for conflict, proposals in results
                ],
                indent=2,
            )
        )
        return

    if not results:
        print("No conflicts found.")
        return
    for conflict, proposals in results:
        print(f"[{', '.join(conflict.ids)}]")
        if not proposals:
            print("  no improving revision found")
        for p in proposals:
            print(
                f"  - {p.action_type.value} {p.target_id} ({p.change}): "
                f"{p.expected_effect_delta:+.2f}"
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="equilibrium",
        description="Coherence engine for wide reflective equilibrium",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run
    p_run = subparsers.add_parser("run", help="Score a session and suggest revisions")
    p_run.add_argument("file", help="Session JSON file ('-' for stdin)")
    p_run.add_argument("--timeout-ms", type=float, default=None,
                       help="Soft time budget in ms (50-10000, default from settings)")
    p_run.add_argument("--weights", help="Score weights as A,C,P")
    p_run.add_argument("--json", "-j", action="store_true")

    # conflicts
    p_conflicts = subparsers.add_parser("conflicts", help="List minimal conflict sets")
    p_conflicts.add_argument("file", help="Session JSON file ('-' for stdin)")
    p_conflicts.add_argument("--json", "-j", action="store_true")

    # simulate
    p_simulate = subparsers.add_parser("simulate", help="Score a session before and after a patch")
    p_simulate.add_argument("file", help="Session JSON file")
    p_simulate.add_argument("patch_file", help="Patch JSON file")
    p_simulate.add_argument("--weights", help="Score weights as A,C,P")
    p_simulate.add_argument("--json", "-j", action="store_true")

    # suggest
    p_suggest = subparsers.add_parser("suggest", help="Propose revisions per conflict set")
    p_suggest.add_argument("file", help="Session JSON file ('-' for stdin)")
    p_suggest.add_argument("--max", "-m", type=int, default=None, help="Proposals per conflict")
    p_suggest.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "run":
            cmd_run(args)
        elif args.command == "conflicts":
            cmd_conflicts(args)
        elif args.command == "simulate":
            cmd_simulate(args)
        elif args.command == "suggest":
            cmd_suggest(args)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e.filename}")
        sys.exit(1)
    except (ValueError, TypeError, EquilibriumError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
