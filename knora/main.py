# knora/main.py

import logging

import uvicorn
from components.api_app.main import create_app
from shared.initializer import (
    create_arg_parser,
    initialize_service_from_args,
)

logger = logging.getLogger(__name__)


def main() -> None:
    """
    Initializes the engine and serves the HTTP API.
    """
    parser = create_arg_parser()
    parser.description = "Run the KnoRa API server."
    args = parser.parse_args()

    config, service = initialize_service_from_args(args)

    app = create_app(service)
    print(f"KnoRa API will be served on http://{config.server.host}:{config.server.port}")
    uvicorn.run(app, host=config.server.host, port=config.server.port)


def run() -> None:
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Server shut down gracefully.")


if __name__ == "__main__":
    run()
