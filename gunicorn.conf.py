# Gunicorn configuration file for Tender Tracker

import os

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', 8000)}"
backlog = 2048

# Worker processes
# One worker only: the search and cleanup loops run inside the app process
# and the GosPlan rate limit is per process.
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
graceful_timeout = 30
keepalive = 2

# Logging
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr
loglevel = os.getenv("LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "tender-tracker"

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

# Loops are started in the worker's startup hook, never in the master
preload_app = False
reload = False
