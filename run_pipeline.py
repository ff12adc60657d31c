"""CLI entry point for the deploy pipeline."""

import argparse
import signal
import sys
from dataclasses import replace

from dotenv import load_dotenv

from shipit.config import Settings
from shipit.deploy import (
    DeploymentController,
    DeploymentLogError,
    DockerRegistry,
    JsonFileDeploymentLog,
)
from shipit.logging_config import configure_logging
from shipit.orchestrator import PipelineOrchestrator
from shipit.pipeline import ConfigurationError, load_pipeline, topological_order
from shipit.scheduler import CancellationToken
from shipit.trigger import TriggerInfo

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the deploy pipeline")
    parser.add_argument(
        "--pipeline",
        default="pipeline.yml",
        help="Path to the pipeline definition (default: pipeline.yml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (overrides LOG_LEVEL env var)",
    )
    parser.add_argument("--commit", help="Commit SHA (default: GITHUB_SHA)")
    parser.add_argument("--branch", help="Branch name (default: GITHUB_REF_NAME)")
    parser.add_argument("--actor", help="Who triggered the run (default: GITHUB_ACTOR)")
    parser.add_argument(
        "--image",
        help="Local image reference to build and deploy (default: <pipeline>:<commit>)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum number of stages running at once",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the pipeline and print the execution order",
    )
    parser.add_argument(
        "--status",
        metavar="ENV",
        help="Show the live artifact and recent deployments of an environment",
    )
    parser.add_argument(
        "--resolve",
        nargs=2,
        metavar=("ENV", "ARTIFACT"),
        help="Record that ARTIFACT was restored by hand in ENV",
    )
    return parser


def _resolve_trigger(args: argparse.Namespace) -> TriggerInfo:
    github = TriggerInfo.from_github_env()
    commit = args.commit or (github.commit if github else None)
    if not commit:
        raise ConfigurationError("no commit given: pass --commit or set GITHUB_SHA")
    return TriggerInfo(
        commit=commit,
        branch=args.branch or (github.branch if github else ""),
        actor=args.actor or (github.actor if github else ""),
    )


def _show_status(settings: Settings, environment: str) -> int:
    log = JsonFileDeploymentLog(settings.deploy_log_path)
    history = log.history(environment)
    current = log.current_artifact_id(environment)
    print(f"Environment: {environment}")
    print(f"Live artifact: {current or '(none)'}")
    for record in history[-10:]:
        print(
            f"  {record.created_at.strftime('%Y-%m-%d %H:%M:%S')} "
            f"{record.artifact_id} {record.outcome.value}"
            + (f" - {record.error}" if record.error else "")
        )
    return EXIT_OK


def _resolve(settings: Settings, environment: str, artifact_id: str, actor: str) -> int:
    if not settings.registry:
        raise ConfigurationError("SHIPIT_REGISTRY must be set to resolve an environment")
    registry = DockerRegistry(settings.registry)
    controller = DeploymentController(
        registry=registry,
        deployment_log=JsonFileDeploymentLog(settings.deploy_log_path),
    )
    record = controller.record_manual_recovery(
        environment, artifact_id, registry.reference_for(artifact_id), actor=actor
    )
    print(f"Recorded {record.artifact_id} as live in {environment}")
    return EXIT_OK


def main() -> int:
    load_dotenv()

    args = _build_parser().parse_args()
    configure_logging(level_override=args.log_level)

    try:
        settings = Settings.from_env()

        if args.status:
            return _show_status(settings, args.status)
        if args.resolve:
            return _resolve(settings, args.resolve[0], args.resolve[1], args.actor or "")

        spec = load_pipeline(args.pipeline)

        if args.dry_run:
            print(f"Pipeline '{spec.name}' execution order:")
            for index, name in enumerate(topological_order(spec), start=1):
                needs = sorted(spec.get_stage(name).needs)
                suffix = f" (needs: {', '.join(needs)})" if needs else ""
                print(f"  {index}. {name}{suffix}")
            return EXIT_OK

        trigger = _resolve_trigger(args)
        if args.concurrency is not None:
            if args.concurrency < 1:
                raise ConfigurationError(
                    f"--concurrency must be at least 1, got {args.concurrency}"
                )
            settings = replace(settings, concurrency=args.concurrency)

        token = CancellationToken()

        def _cancel(signum, _frame):
            token.cancel(f"received signal {signal.Signals(signum).name}")

        signal.signal(signal.SIGINT, _cancel)
        signal.signal(signal.SIGTERM, _cancel)

        orchestrator = PipelineOrchestrator(spec, settings=settings)
        result = orchestrator.run(trigger, image=args.image, cancel_token=token)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except DeploymentLogError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    # Print summary
    print("\n--- Pipeline Summary ---")
    for stage in result.stages:
        print(f"  {stage.name}: {stage.status.value.upper()} ({stage.duration_seconds}s)")
        if stage.error:
            print(f"    error: {stage.error}")
    for record in result.deployments:
        print(
            f"  deployment {record.artifact_id} -> {record.environment}: "
            f"{record.outcome.value} (live: {record.live_artifact_id or 'none'})"
        )
    if result.fatal_error:
        print(f"  fatal: {result.fatal_error}")

    overall = "SUCCESS" if result.success else "FAILURE"
    print(f"\nResult: {overall}")

    return EXIT_OK if result.success else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
