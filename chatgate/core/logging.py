from __future__ import annotations

import logging


_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def configure_logging(level: str = "INFO") -> None:
    # Install a single root handler; later calls only adjust the level.
    global _configured
    root = logging.getLogger()
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    # httpx logs every request at INFO; keep webhook URLs out of default logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
