"""Rich console logging for the inkwell command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are chatty at DEBUG.
QUIET_LOGGERS = ("websockets", "werkzeug")


def format_duration_ms(ms: float) -> str:
    return f"{ms:.1f} ms"


def configure_logging(verbose: bool = False) -> Console:
    """Route log records through Rich. Returns the console used."""
    console = Console(stderr=True)
    handler = RichHandler(console=console, show_path=verbose, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
    return console
