import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

audit_logger = logging.getLogger("schemakit.audit")


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(getattr(handler, "_schemakit", False) for handler in root.handlers):
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._schemakit = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())

    # psycopg_pool is chatty at INFO about every connection it opens
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)


def audit(action: str, **details: object) -> None:
    audit_logger.info("%s %s", action, details, extra={"action": action, "details": details})
