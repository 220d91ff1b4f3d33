"""
Command Line Interface

Entry point for Jenkins jobs. Typical use in a declarative pipeline:

    post {
        always {
            sh 'papyrus-notify publish --result "${currentBuild.currentResult}"'
        }
    }

Commands:
    publish        Report the current build to papyrus and upload its artifact
    show-config    Display the effective configuration with secrets masked

Exit Codes:
    0: Success
    1: Publish failed
    2: Configuration error
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from tabulate import tabulate

from .config_loader import Config, ConfigLoader
from .error_handler import RetryExhaustedError
from .jenkins_build_fetcher import JenkinsBuildFetcher, build_context_from_environment
from .logging_config import setup_logging, mask_token
from .models import BuildContext, MetadataEntry
from .notifier import UploadBuildNotifier

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def load_env_file(env_file: Optional[Path]) -> None:
    """Apply a .env file; variables already set in the environment win."""
    if env_file and env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file)


def resolve_build_context(args: argparse.Namespace, config: Config) -> BuildContext:
    """
    Work out the BuildContext for the current build.

    The Jenkins API is used when credentials and JOB_NAME are available;
    otherwise the context is built from the command line (no change set).

    Raises:
        ValueError: If the build number or result cannot be determined
    """
    build_number = args.build_number if args.build_number is not None else config.build_number
    if build_number is None:
        raise ValueError("Build number is required (--build-number or BUILD_NUMBER)")

    workspace = args.workspace or config.workspace
    result = args.result or os.getenv('BUILD_RESULT')

    if config.jenkins_api_enabled and config.job_name:
        fetcher = JenkinsBuildFetcher(config)
        try:
            return fetcher.fetch_build_context(config.job_name, build_number, workspace, result)
        except RetryExhaustedError as e:
            if not result:
                raise ValueError(f"Could not read build record from Jenkins and no --result given: {e}") from e
            logger.warning("Could not read build record from Jenkins, continuing without commits: %s", e)

    if not result:
        raise ValueError("Build result is required (--result or BUILD_RESULT)")

    return build_context_from_environment(
        build_number=build_number,
        result=result,
        workspace=workspace,
        started_at_ms=args.started_at_ms,
        duration_ms=args.duration_ms
    )


def cmd_publish(args: argparse.Namespace) -> int:
    """Publish the current build."""
    try:
        config = ConfigLoader.load()
        extra_metadata = [MetadataEntry.parse(item) for item in args.metadata]
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    setup_logging(log_dir=config.log_output_dir, log_level=config.log_level)

    try:
        context = resolve_build_context(args, config)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    notifier = UploadBuildNotifier.from_config(config, extra_metadata)

    if args.dry_run:
        descriptor = notifier.build_descriptor(context)
        print(json.dumps(descriptor.to_payload(), indent=2))
        return EXIT_SUCCESS

    return EXIT_SUCCESS if notifier.perform(context) else EXIT_FAILED


def show_config_table(environ: dict) -> str:
    """
    Render the notifier settings found in ``environ`` as a table.

    Access tokens are masked.
    """
    secrets = {'PAPYRUS_ACCESS_TOKEN', 'JENKINS_API_TOKEN'}
    keys = [
        'PAPYRUS_URL', 'PAPYRUS_ACCESS_TOKEN', 'PAPYRUS_PROJECT', 'PAPYRUS_VERSION',
        'PAPYRUS_FILE_NAME', 'PAPYRUS_POST_SCRIPT', 'PAPYRUS_METADATA', 'PAPYRUS_TIMEOUT',
        'LOG_LEVEL', 'LOG_OUTPUT_DIR', 'JENKINS_URL', 'JENKINS_USER', 'JENKINS_API_TOKEN',
        'JOB_NAME', 'BUILD_NUMBER', 'WORKSPACE'
    ]
    rows = []
    for key in keys:
        value = environ.get(key)
        if not value:
            value = 'Not Set'
        elif key in secrets:
            value = mask_token(value)
        rows.append([key, value])
    return tabulate(rows, headers=["Setting", "Value"], tablefmt="fancy_grid", colalign=("left", "left"))


def cmd_show_config(args: argparse.Namespace) -> int:  # pylint: disable=unused-argument
    """Display configuration and validation result."""
    print(show_config_table(os.environ))
    try:
        ConfigLoader.load()
    except ValueError as e:
        print(f"\nConfiguration error: {e}\n")
        return EXIT_CONFIG_ERROR
    print("\nConfiguration is valid\n")
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='papyrus-notify',
        description="Report Jenkins builds to papyrus and upload their artifacts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0 - Success
  1 - Publish failed
  2 - Configuration error

Examples:
  %(prog)s publish --result SUCCESS
  %(prog)s publish --result FAILURE --metadata branch=main
  %(prog)s publish --dry-run --result SUCCESS
  %(prog)s show-config --env-file .env.ci
        """
    )
    parser.add_argument(
        '--env-file',
        type=Path,
        default=Path('.env'),
        help='Path to .env file, ignored when missing (default: .env)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    parser_publish = subparsers.add_parser('publish', help='Report the current build to papyrus')
    parser_publish.add_argument(
        '--result',
        help='CI result (SUCCESS, UNSTABLE, FAILURE, ...). Default: BUILD_RESULT'
    )
    parser_publish.add_argument('--build-number', type=int, help='Build number (default: BUILD_NUMBER)')
    parser_publish.add_argument('--workspace', help='Workspace directory (default: WORKSPACE)')
    parser_publish.add_argument('--started-at-ms', type=int, help='Build start in ms since epoch (without Jenkins API)')
    parser_publish.add_argument('--duration-ms', type=int, help='Build duration in ms (without Jenkins API)')
    parser_publish.add_argument(
        '--metadata',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Extra metadata, may be repeated; applied after PAPYRUS_METADATA'
    )
    parser_publish.add_argument(
        '--dry-run',
        action='store_true',
        help='Print the CreateBuild payload instead of publishing'
    )
    parser_publish.set_defaults(func=cmd_publish)

    parser_show = subparsers.add_parser('show-config', help='Display the effective configuration')
    parser_show.set_defaults(func=cmd_show_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code
    """
    # Console logging until configuration provides the level
    setup_logging(log_level=os.getenv('LOG_LEVEL', 'INFO'))

    parser = build_parser()
    args = parser.parse_args(argv)

    load_env_file(args.env_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
