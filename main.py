"""CLI entry point: python main.py upgrade|confirm|status|serve"""

import argparse
import json
import sys

from src.changelog_sync.datasources import build_contexts, describe_datasource
from src.changelog_sync.exceptions import ChangelogSyncError, ConfirmationRequiredError
from src.changelog_sync.gate import ConfirmationGate
from src.changelog_sync.liquibase import LiquibaseCli
from src.changelog_sync.orchestrator import UpgradeOrchestrator
from src.changelog_sync.reconciler import FileReconciler
from src.db.engine import dispose_engines
from src.logging_config import configure_logging
from src.settings import get_settings

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIRMATION_REQUIRED = 2


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_upgrade(args, settings) -> int:
    orchestrator = UpgradeOrchestrator(LiquibaseCli(settings.liquibase_executable))
    stop_on_error = settings.stop_on_error and not args.keep_going
    reports = orchestrator.run_all(build_contexts(settings), stop_on_error=stop_on_error)
    _print_json([r.to_dict() for r in reports])
    return EXIT_OK if all(r.error is None for r in reports) else EXIT_FAILED


def cmd_confirm(args, settings) -> int:
    engine = LiquibaseCli(settings.liquibase_executable)
    contexts = build_contexts(settings)
    gate = ConfirmationGate(FileReconciler(engine))
    results = gate.confirm(contexts)
    _print_json([r.to_dict() for r in results])
    if args.upgrade:
        return cmd_upgrade(args, settings)
    return EXIT_OK


def cmd_status(args, settings) -> int:
    reconciler = FileReconciler(LiquibaseCli(settings.liquibase_executable))
    _print_json([describe_datasource(ctx, reconciler) for ctx in build_contexts(settings)])
    return EXIT_OK


def cmd_serve(args, settings) -> int:
    import uvicorn

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return EXIT_OK


COMMANDS = {
    "upgrade": cmd_upgrade,
    "confirm": cmd_confirm,
    "status": cmd_status,
    "serve": cmd_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="changelog-sync - reconcile Liquibase changelogs and apply upgrades safely"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    upgrade = sub.add_parser("upgrade", help="Reconcile drift, then apply unrun changesets")
    upgrade.add_argument(
        "--keep-going", action="store_true",
        help="Continue with the next datasource after a failure"
    )

    confirm = sub.add_parser("confirm", help="Allow rollback of missing changelog files")
    confirm.add_argument(
        "--upgrade", action="store_true",
        help="Run the upgrade pass after reconciling"
    )
    confirm.add_argument("--keep-going", action="store_true", help=argparse.SUPPRESS)

    sub.add_parser("status", help="Show drift and ledger backups per datasource")

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    settings = get_settings()

    try:
        return COMMANDS[args.command](args, settings)
    except ConfirmationRequiredError as e:
        print(f"{e}\nRun 'python main.py confirm' to roll back and rebuild it.", file=sys.stderr)
        return EXIT_CONFIRMATION_REQUIRED
    except ChangelogSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        dispose_engines()


if __name__ == "__main__":
    sys.exit(main())
