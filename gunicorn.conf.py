"""
Gunicorn configuration for the reporting API.
"""

import os

bind = os.getenv("BIND", "0.0.0.0:8000")
worker_class = "uvicorn.workers.UvicornWorker"

# Report queries wait on the database rather than the CPU, so a few async
# workers go a long way
workers = int(os.getenv("WORKERS", 2))
timeout = int(os.getenv("REQUEST_TIMEOUT", 60))
graceful_timeout = 30
keepalive = 5

# Recycle workers to bound memory held by cached parquet frames
max_requests = 2000
max_requests_jitter = 200

proc_name = "retail-reports-api"

# Requests are logged by the application middleware
errorlog = "-"
accesslog = None
loglevel = os.getenv("LOG_LEVEL", "info").lower()
