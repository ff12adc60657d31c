#!/usr/bin/env python3
"""Local smoke test for run_pipeline.py.

Checks that the tools and settings a real deploy needs are present, then
validates pipeline.yml and runs it end to end. The deployment log is a
scratch file, so the project's deployment history is left untouched.

Run from project root:
    python scripts/local_test_run_pipeline.py
"""

import os
import shutil
import subprocess
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PIPELINE_PATH = PROJECT_ROOT / "pipeline.yml"

sys.path.insert(0, str(PROJECT_ROOT))
from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

REQUIRED_ENV_VARS = [
    "SHIPIT_REGISTRY",
]

REQUIRED_TOOLS = [
    "docker",
    "ssh",
]


def check_prerequisites() -> list[str]:
    errors = []

    for var in REQUIRED_ENV_VARS:
        if not os.environ.get(var):
            errors.append(f"Missing env var: {var}")

    for tool in REQUIRED_TOOLS:
        if shutil.which(tool) is None:
            errors.append(f"Missing executable on PATH: {tool}")

    if not PIPELINE_PATH.exists():
        errors.append(f"Missing file: {PIPELINE_PATH.relative_to(PROJECT_ROOT)}")

    return errors


def _head_commit() -> str:
    completed = subprocess.run(
        ["git", "rev-parse", "HEAD"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip() or "local"


def main() -> int:
    print("Checking prerequisites ...\n")
    errors = check_prerequisites()

    if errors:
        for err in errors:
            print(f"  ✗ {err}")
        print(
            "\nSetup instructions:"
            "\n  1. Set SHIPIT_REGISTRY in .env or export it"
            "\n  2. Log docker in to the registry"
            "\n  3. Make sure the deploy host accepts your ssh key (SHIPIT_SSH_KEY)"
        )
        return 1

    for var in REQUIRED_ENV_VARS:
        print(f"  ✓ {var}")
    for tool in REQUIRED_TOOLS:
        print(f"  ✓ {tool}")

    from shipit.config import Settings
    from shipit.orchestrator import PipelineOrchestrator
    from shipit.pipeline import ConfigurationError, load_pipeline, topological_order
    from shipit.trigger import TriggerInfo

    try:
        spec = load_pipeline(PIPELINE_PATH)
    except ConfigurationError as e:
        print(f"  ✗ {e}")
        return 1
    print(f"  ✓ {PIPELINE_PATH.name}: {' -> '.join(topological_order(spec))}")

    scratch = Path(tempfile.mkdtemp(prefix="shipit-")) / "deployments.jsonl"
    settings = replace(Settings.from_env(), deploy_log_path=scratch)
    trigger = TriggerInfo(commit=_head_commit(), branch="local", actor="smoke-test")

    print(f"\nAll prerequisites met. Running '{spec.name}' for {trigger.short_commit} ...\n")

    result = PipelineOrchestrator(spec, settings=settings).run(trigger)

    print("\n--- Pipeline Summary ---")
    for stage in result.stages:
        print(f"  {stage.name}: {stage.status.value.upper()} ({stage.duration_seconds}s)")
        for action in stage.actions:
            print(f"    {action.name}: {'ok' if action.success else 'failed'}")
        if stage.error:
            print(f"    error: {stage.error}")
    print(f"  deployment log: {scratch}")

    overall = "PASS" if result.success else "FAIL"
    print(f"\nResult: {overall}")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
