# src/epns_dispatch/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from epns_dispatch.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so EPNS_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from epns_dispatch.api.app import create_app
    from epns_dispatch.api.structured_logging import configure_structured_logging

    configure_structured_logging()

    host = os.getenv("EPNS_API_HOST", "127.0.0.1")
    port = int(os.getenv("EPNS_API_PORT", "8080"))

    uvicorn.run(create_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
