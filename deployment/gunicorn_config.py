"""
Gunicorn Configuration for HomeLedger

    gunicorn -c deployment/gunicorn_config.py "app:create_app('production')"

Threaded workers: each request runs on its own thread, so a slow SMTP
server or upload never blocks other callers.  Every thread gets its own
SQLAlchemy session through Flask-SQLAlchemy's app-context scoping.
"""
import multiprocessing
import os

# Server Socket
bind = os.environ.get('HOMELEDGER_BIND', '127.0.0.1:8000')
backlog = 2048

# Worker Processes
workers = int(os.environ.get('HOMELEDGER_WORKERS', multiprocessing.cpu_count() + 1))
worker_class = 'gthread'
threads = int(os.environ.get('HOMELEDGER_THREADS', 8))
max_requests = 1000
max_requests_jitter = 50
# Covers MAIL_TIMEOUT plus a 10MB upload on a slow link
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging
log_dir = os.environ.get('HOMELEDGER_LOG_DIR', 'logs')
accesslog = os.path.join(log_dir, 'gunicorn_access.log')
errorlog = os.path.join(log_dir, 'gunicorn_error.log')
loglevel = 'info'
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s %(D)s'

# Process Naming
proc_name = 'homeledger'

# Server Mechanics
daemon = False
umask = 0o007

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def on_starting(server):
    os.makedirs(log_dir, exist_ok=True)


def post_fork(server, worker):
    """Called after a worker has been forked"""
    server.log.info("Worker spawned (pid: %s, threads: %s)", worker.pid, threads)


def when_ready(server):
    server.log.info("HomeLedger ready on %s", bind)


def worker_abort(worker):
    """Called when a worker times out"""
    worker.log.warning("worker timed out (pid: %s)", worker.pid)
