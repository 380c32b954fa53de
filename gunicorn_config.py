"""Gunicorn settings for the Ella Rises portal: gunicorn -c gunicorn_config.py wsgi:application"""
import os

bind = f"0.0.0.0:{int(os.environ.get('PORT', 3000))}"

# One request per worker at a time; the SQLAlchemy pool is per worker
workers = int(os.environ.get('WEB_CONCURRENCY', 2))
worker_class = 'sync'
timeout = int(os.environ.get('GUNICORN_TIMEOUT', 60))
graceful_timeout = 30
keepalive = 5

# Recycle workers
max_requests = 1000
max_requests_jitter = 50

# Trust X-Forwarded-* from the hosting platform's proxy
forwarded_allow_ips = os.environ.get('FORWARDED_ALLOW_IPS', '*')

loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
accesslog = '-'
errorlog = '-'
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(L)ss "%(a)s"'
capture_output = True

limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

reload = os.environ.get('APP_ENV') == 'development'


def on_starting(server):
    server.log.info("Starting Ella Rises portal on %s with %s workers", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted (request exceeded %ss)", worker.pid, timeout)
