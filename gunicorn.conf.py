"""
Gunicorn configuration for the Fitplan program engine.

Run with:  gunicorn -c gunicorn.conf.py fitplan.main:app

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Adaptations serialize on the program version, so extra workers only add
# contention on hot programs; scale out before scaling up.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# A full 56-day rebuild is well under this; anything longer is stuck.
timeout = 60

# Application logs go through loguru to stderr; gunicorn keeps its own
# access log on stdout.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
