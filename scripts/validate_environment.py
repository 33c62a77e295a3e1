#!/usr/bin/env python3
"""Validate local queue estimator environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import Occupant, Party
from backend.repository.data_repository import DataRepository
from backend.services.estimation_service import estimate_queue_entry_minutes
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="queue-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    required_modules = ["fastapi", "uvicorn", "pydantic", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in required_modules:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "queue_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Default courses and capacity
        try:
            repository.seed_defaults()
            courses = repository.list_courses()
            if len(courses) != len(validation_settings.default_courses):
                raise RuntimeError(f"expected {len(validation_settings.default_courses)} courses, got {len(courses)}")
            ok, line = _print_result(
                "Default seed",
                True,
                f": {len(courses)} courses, capacity={repository.get_max_capacity()}",
            )
        except RuntimeError as exc:
            ok, line = _print_result("Default seed", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Estimator smoke run
        try:
            now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
            estimates = estimate_queue_entry_minutes(
                [Party(party_id="p1", size=2, joined_at=now)],
                [Occupant(occupant_id="o1", size=4, departure_at=now + timedelta(minutes=10))],
                4,
                [],
                now=now,
            )
            if estimates != {"p1": 10}:
                raise RuntimeError(f"unexpected estimate {estimates}")
            ok, line = _print_result("Estimator smoke run", True)
        except (RuntimeError, ValueError) as exc:
            ok, line = _print_result("Estimator smoke run", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Queue Estimator Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
