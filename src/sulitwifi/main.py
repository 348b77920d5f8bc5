"""Application entry point for the SULIT WiFi portal server."""

from sulitwifi.app import App
from sulitwifi.config import Config
from sulitwifi.logging import setup_logging
from sulitwifi.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
