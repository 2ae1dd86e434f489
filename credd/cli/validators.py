"""Input validation for CLI arguments."""
import sys
from pathlib import Path


def validate_directory(path: Path) -> None:
    """
    Validate the target directory exists.

    Args:
        path: Directory given on the command line

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not path.exists():
        print(f"Error: Directory does not exist: {path}", file=sys.stderr)
        sys.exit(2)

    if not path.is_dir():
        print(f"Error: Path is not a directory: {path}", file=sys.stderr)
        print("\nPass the project directory that holds config.py, not the file itself.", file=sys.stderr)
        sys.exit(2)


def validate_modes(build: bool, upload: bool) -> None:
    """
    Validate at least one of build and upload is selected.

    Raises:
        SystemExit with code 2 if both are off
    """
    if not build and not upload:
        print("Error: Nothing to do: --no-build given without --upload", file=sys.stderr)
        sys.exit(2)
