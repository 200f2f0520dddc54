"""BasicApi launcher: loads configuration, builds the app and starts Uvicorn."""
from __future__ import annotations
import logging
import os
import sys
from typing import Optional, Sequence

from .config import ConfigurationError, load_settings
from .main import create_app

HOST = "0.0.0.0"
PORT = 5000


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    # Start the ASGI server
    import uvicorn

    configure_logging()
    if argv is None:
        argv = sys.argv[1:]

    try:
        settings = load_settings(argv)
        app = create_app(settings)
    except ConfigurationError as e:
        print(f"Fatal: {e}", file=sys.stderr)
        raise SystemExit(1)

    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
