"""Serve the DTR Format Intake API with uvicorn."""

import os

import uvicorn

from src.api.app import create_app
from src.container import build_container
from src.utils.config import load_config
from src.utils.logger import setup_logging


def main() -> None:
    """Configure logging, seed the registry and start serving.

    ``DTR_HOST`` and ``DTR_PORT`` override the bind address.
    """
    config = load_config()
    setup_logging(config.log_level)
    application = create_app(build_container(config))
    uvicorn.run(
        application,
        host=os.environ.get("DTR_HOST", "0.0.0.0"),
        port=int(os.environ.get("DTR_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
