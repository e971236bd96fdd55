# blindstore/core/context.py

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
client_host_ctx = contextvars.ContextVar("client_host", default=None)
