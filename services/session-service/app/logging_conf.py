# services/session-service/app/logging_conf.py
import logging
import sys

from app.config import settings
from app.middleware.correlation import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] rid=%(request_id)s %(message)s"

handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(logging.Formatter(LOG_FORMAT))
# On the handler so records from every child logger carry the request id
handler.addFilter(CorrelationIdFilter())

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.addHandler(handler)
