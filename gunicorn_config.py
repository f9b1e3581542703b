"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
Each open /auth/session/events stream holds a thread, so run threaded workers.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = 1
worker_class = "gthread"
threads = int(os.environ.get("GUNICORN_THREADS", "8"))
timeout = 120
