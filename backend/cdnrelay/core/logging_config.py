import logging
import sys

logger = logging.getLogger("cdn-relay")


def setup_logging(level: str = "info") -> None:
    """Configure the root logger. Call once, at process start."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
