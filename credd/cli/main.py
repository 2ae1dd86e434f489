"""CLI entrypoint for credd."""
import sys
import argparse
import asyncio
import logging
from pathlib import Path

from .validators import validate_directory, validate_modes

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _print_outcome(outcome) -> None:
    """Render one project's build/upload outcome to stdout."""
    print(f"{outcome.project_dir}")

    if outcome.error is not None:
        print(f"  error [{outcome.error_code}]: {outcome.error}")
        return

    if outcome.build is not None:
        if not outcome.build.entries:
            print(f"  build: nothing to build ({outcome.build.build_dir})")
        for entry in outcome.build.entries:
            line = f"  {entry.status.value:<17}{entry.filename}"
            if entry.reason:
                line += f": {entry.reason}"
            print(line)

    if outcome.upload is not None:
        print(f"  upload to {outcome.upload.service_name}:")
        for entry in outcome.upload.entries:
            line = f"    {entry.status.value:<9}{entry.cred_type.value} {entry.name}"
            if entry.reason:
                line += f": [{entry.code}] {entry.reason}"
            print(line)


async def _run(args) -> int:
    from credd.creds.domains.settings import load_settings
    from credd.creds.workflows.runner import run_deep, run_project

    settings = load_settings()
    dirname = Path(args.dir).resolve()

    if args.recursive:
        report = await run_deep(
            dirname,
            build=args.build,
            upload=args.upload,
            force=args.force,
            settings=settings,
            fail_fast=args.fail_fast,
        )
        if not report.projects:
            print(f"No projects (directories with {settings.marker}) found under {dirname}")
        for outcome in report.projects:
            _print_outcome(outcome)
        if report.projects:
            print(f"\n{len(report.succeeded)} project(s) succeeded, {len(report.failed)} failed")
        return 0 if report.ok else 1

    outcome = await run_project(
        dirname,
        build=args.build,
        upload=args.upload,
        force=args.force,
        build_dir=Path(args.build_dir).resolve() if args.build_dir else None,
        settings=settings,
        fail_fast=args.fail_fast,
    )
    _print_outcome(outcome)
    return 0 if outcome.ok else 1


def cmd_run(args):
    """Build and/or upload credentials of one project or a tree of projects."""
    validate_directory(Path(args.dir))
    validate_modes(args.build, args.upload)
    if args.recursive and args.build_dir:
        print("Error: --build-dir cannot be combined with --recursive", file=sys.stderr)
        sys.exit(2)
    sys.exit(asyncio.run(_run(args)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credd",
        description="Build credential files from config.py and upload them as secrets or variables",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error, or any file/credential/project failed
  2 - Usage error (missing directory, nothing to do, etc.)

Environment variables:
  CREDD_CONFIG    - Tool settings file (default: ~/.config/credd/config.yml)
  CREDD_BUILD_DIR - Build directory name (overrides settings)
  CREDD_MARKER    - Project marker file for --recursive (overrides settings)
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "dir",
        nargs="?",
        default=".",
        help="Directory with config.py (default: current directory)"
    )
    parser.add_argument(
        "-b", "--build",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Build creds (default: on)"
    )
    parser.add_argument(
        "-u", "--upload",
        action="store_true",
        help="Upload creds to the configured service"
    )
    parser.add_argument(
        "-r", "--recursive",
        action="store_true",
        help="Find projects in subdirectories (directories holding the marker file)"
    )
    parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Rebuild existing files and overwrite existing credentials"
    )
    parser.add_argument(
        "--build-dir",
        help="Build directory (default: <dir>/build)"
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop a project's build at its first failing file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress (-v) or debug details (-vv) to stderr"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"credd {VERSION}"
    )
    return parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (configuration, authentication, failed entries, etc.)
        2 - Usage errors (invalid arguments, missing directory, etc.)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.verbose == 1:
        logging.getLogger().setLevel(logging.INFO)

    try:
        cmd_run(args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
