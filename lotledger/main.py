"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the FastAPI service
or a one-off portfolio replay.
"""

import argparse
import logging

import uvicorn

from lotledger.bootstrap import bootstrap_create_application, bootstrap_create_replay_orchestrator
from lotledger.config import config_load_settings


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
    """

    argument_parser = argparse.ArgumentParser(description="Tax lot ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "replay-run"),
        help="Runtime command: `api` starts server, `replay-run` replays every stored account once",
        type=str,
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if parsed_arguments.command == "replay-run":
        replay_orchestrator = bootstrap_create_replay_orchestrator()
        execution_result = replay_orchestrator.job_execute(job_name="replay_run")
        for outcome in execution_result.account_outcomes:
            if outcome.status != "success":
                print(f"REPLAY_FAILED: {outcome.account_id} {outcome.error_code} {outcome.error_message}")
        if execution_result.status != "success":
            raise SystemExit(1)
        return

    application = bootstrap_create_application()
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


if __name__ == "__main__":
    main()
