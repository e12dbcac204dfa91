"""CLI validating the vented-box engine against reference designs."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from collections.abc import Mapping, Sequence

SCRIPT_PATH = pathlib.Path(__file__).resolve()
PYTHON_ROOT = SCRIPT_PATH.parent.parent

if str(PYTHON_ROOT) not in sys.path:
    sys.path.insert(0, str(PYTHON_ROOT))

from vent_core import DEFAULT_SETTINGS  # noqa: E402 - path adjusted above
from vent_core.reference import (  # noqa: E402
    REFERENCE_CASES,
    ReferenceCheck,
    find_case,
    validate_case,
)


def _write_json(path: pathlib.Path | None, payload: Mapping[str, object], pretty: bool) -> None:
    if path is None:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(dict(payload), indent=2 if pretty else None, sort_keys=pretty),
        encoding="utf-8",
    )


def _print_report(report: ReferenceCheck) -> None:
    status = "PASS" if report.passed else "FAIL"
    print(f"[{status}] {report.name}")
    for check in report.checks:
        mark = "ok" if check.passed else "!!"
        print(
            f"  {mark} {check.metric}: expected {check.expected:.4f} ± {check.tolerance:g}, "
            f"got {check.actual:.4f} ({check.deviation:+.4f})"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "cases",
        nargs="*",
        help="Reference case names to run (default: all). Use --list to see them.",
    )
    parser.add_argument("--list", action="store_true", help="List the available reference cases and exit")
    parser.add_argument(
        "--f3-tolerance",
        type=float,
        default=DEFAULT_SETTINGS.f3_tolerance_hz,
        help="Bracket width in Hz at which the -3 dB search stops (default: %(default)s)",
    )
    parser.add_argument("--json", action="store_true", help="Emit machine-readable results to stdout")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON outputs")
    parser.add_argument("--output", type=pathlib.Path, help="Write the results to a JSON file")
    parser.add_argument("--verbose", action="store_true", help="Log solver iterations")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        for case in REFERENCE_CASES:
            print(f"{case.name}: {case.description}")
        return 0

    if args.f3_tolerance <= 0:
        parser.error("--f3-tolerance must be greater than zero")

    try:
        cases = [find_case(name) for name in args.cases] if args.cases else list(REFERENCE_CASES)
    except KeyError as exc:
        parser.error(str(exc.args[0]))

    settings = DEFAULT_SETTINGS.replace(f3_tolerance_hz=args.f3_tolerance)
    reports = [validate_case(case, settings) for case in cases]
    payload = {
        "passed": all(report.passed for report in reports),
        "settings": settings.to_dict(),
        "cases": [report.to_dict() for report in reports],
    }

    _write_json(args.output, payload, args.pretty)
    if args.json:
        print(json.dumps(payload, indent=2 if args.pretty else None))
    else:
        for report in reports:
            _print_report(report)
        passed = sum(1 for report in reports if report.passed)
        print(f"{passed}/{len(reports)} reference cases passed")

    return 0 if payload["passed"] else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
