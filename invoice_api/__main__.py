"""Module entrypoint for running the invoice API server."""

from __future__ import annotations

import logging
import sys

from .config import ServiceConfig
from .render_pool import DependencyError
from .server import run


def main() -> None:
    config = ServiceConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run(config)
    except DependencyError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
