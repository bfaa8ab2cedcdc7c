"""Run the server: ``python -m nodedoc``."""

from __future__ import annotations

import logging

import uvicorn

from nodedoc.config import load_config
from nodedoc.logging_setup import configure_logging
from nodedoc.main import create_app

logger = logging.getLogger("nodedoc")


def main() -> None:
    cfg = load_config()
    configure_logging(cfg.logging.level)
    app = create_app(cfg)
    logger.info("Serving %s", cfg.library.root)
    logger.info("listening on %s:%s", cfg.server.host, cfg.server.port)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_config=None)


if __name__ == "__main__":
    main()
