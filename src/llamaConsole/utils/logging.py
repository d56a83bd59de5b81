import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "WARNING", log_dir: Optional[Union[str, Path]] = None):
    """Configure loguru sinks.

    Stderr gets colour-coded lines at ``level``. When ``log_dir`` is given, a
    DEBUG-level JSON file is written there as well, for later analysis.
    """
    # Remove the default handler to prevent duplicate outputs
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)
    if log_dir is not None:
        logger.add(
            str(Path(log_dir) / "llamaConsole_{time}.json"),
            level="DEBUG",
            serialize=True,
            rotation="10 MB",
            catch=True,
        )
    logger.debug("Logger configured.")
