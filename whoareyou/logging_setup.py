import logging
import sys

_HANDLER_NAME = 'whoareyou-console'
LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def setup_logging(level: str | int = 'INFO') -> logging.Logger:
    """Attach a single console handler to the root logger; safe to call repeatedly."""
    root = logging.getLogger()
    resolved = level.upper() if isinstance(level, str) else level
    root.setLevel(resolved)

    handler = next((h for h in root.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    handler.setLevel(resolved)
    return root
