# autocontrol/config/logging.py

import json
import logging
from datetime import datetime, timezone

from autocontrol.core.context import company_id_ctx, correlation_id_ctx

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "correlation_id": correlation_id_ctx.get(),
            "company_id": company_id_ctx.get(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_record:
                log_record[key] = value
        return json.dumps(log_record, default=str)


def configure_logging(log_level: str):
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Re-configuring replaces our handler instead of stacking another one
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
