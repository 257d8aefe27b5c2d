import logging
import os
import sys

ENV_VAR_NAME = "LAUNCHER_SEARCH_LOG_LEVEL"

logging.basicConfig(
    level=os.environ.get(ENV_VAR_NAME, "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    stream=sys.stderr,
)

__all__ = ["logging"]
