"""Uvicorn server runner with custom configuration."""

import copy
import logging
from typing import Any

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from telegate.app import App
from telegate.config import Config
from telegate.web.server import create_fastapi_app


class StripQueryFilter(logging.Filter):
    """Drop the query string from uvicorn access records.

    Session ids and provider signatures travel as query parameters, so only
    the path may reach the access log.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn passes (client_addr, method, full_path, http_version, status_code)
        if isinstance(record.args, tuple) and len(record.args) == 5:
            client_addr, method, full_path, http_version, status_code = record.args
            path = str(full_path).split("?", 1)[0]
            record.args = (client_addr, method, path, http_version, status_code)
        return True


def build_log_config() -> dict[str, Any]:
    """Uvicorn logging config with short formats and query-free access lines."""
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    log_config.setdefault("filters", {})["strip_query"] = {"()": StripQueryFilter}
    log_config["handlers"]["access"]["filters"] = ["strip_query"]
    return log_config


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server with custom logging configuration."""
    fastapi_app = create_fastapi_app(app, config)
    uvicorn.run(fastapi_app, host=config.host, port=config.port, log_config=build_log_config(), access_log=True)
