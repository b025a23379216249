"""I/O utilities for logging setup, atomic file writes and JSON loading."""

import json
import logging
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from shutil import move
from typing import Any


def setup_logging(log_dir: Path | None = None, log_level: str = "INFO") -> logging.Logger:
    """Set up logging configuration for promogif.

    Args:
        log_dir: Directory to store log files (console only when None)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        handlers.append(logging.FileHandler(log_dir / f"promogif_{timestamp}.log"))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    return logging.getLogger("promogif")


@contextmanager
def atomic_write(target_path: Path, mode: str = "w"):
    """Context manager for atomic file writes using temporary files.

    Args:
        target_path: Final path where file should be written
        mode: File open mode

    Yields:
        File handle for writing

    Example:
        with atomic_write(Path("banner.gif"), "wb") as f:
            f.write(data)
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode=mode,
        dir=target_path.parent,
        delete=False,
        suffix=f".tmp_{target_path.name}",
    ) as temp_file:
        try:
            yield temp_file
            temp_file.flush()
        except Exception:
            temp_file.close()
            Path(temp_file.name).unlink(missing_ok=True)
            raise

    # Atomic move on POSIX systems once the handle is closed
    move(temp_file.name, target_path)


def load_json(json_path: Path) -> Any:
    """Load JSON data from file.

    Args:
        json_path: Path to JSON file

    Returns:
        Parsed JSON data

    Raises:
        IOError: If file cannot be read
        json.JSONDecodeError: If JSON is invalid
    """
    with open(json_path, encoding="utf-8") as f:
        return json.load(f)
