import logging


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def enable_diagnostics(level: str = "INFO") -> None:
    """Configure the ``autofill_core`` logger tree for CLI use.

    Modules log through ``logging.getLogger(__name__)``; the level set here
    applies to all of them.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger("autofill_core")
    root.setLevel(numeric)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setLevel(numeric)
