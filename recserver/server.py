"""
Personalization Engine server entrypoint.

    python -m recserver.server
    uvicorn recserver.server:app
"""

import uvicorn

from .app import app
from .config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
