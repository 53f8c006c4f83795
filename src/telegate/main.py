"""Application entry point for the Telegate server."""

from telegate.app import App
from telegate.config import Config
from telegate.logging import setup_logging
from telegate.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
