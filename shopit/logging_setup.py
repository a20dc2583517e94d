import logging
import sys

HANDLER_NAME = "shopit"


def setup_logging(level: str = "INFO") -> None:
    """Configures the root logger to write to stdout."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(h.get_name() == HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(handler)
