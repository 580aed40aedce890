# gunicorn_config.py
#
# Uso: gunicorn -c gunicorn_config.py "smsdesk:create_app()"
import multiprocessing
import os
from smsdesk.settings import load_settings

try:
    settings = load_settings()
    PORT = int(settings.get("PORT", os.getenv("PORT", 3000)))
    CONFIG_NAME = settings.get("CONFIG_NAME", os.getenv("CONFIG_NAME"))
except Exception:
    PORT = int(os.getenv("PORT", 3000))
    CONFIG_NAME = os.getenv("CONFIG_NAME")

bind = f"0.0.0.0:{PORT}"
# O EventBus é em memória e por processo: observadores SSE só recebem
# eventos de escritas feitas no mesmo worker. Escale com threads, não processos.
workers = int(os.getenv("WEB_CONCURRENCY", 1))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", multiprocessing.cpu_count() * 4))
timeout = 120                 # streams SSE mandam ping a cada 25s
keepalive = 5
errorlog = "-"
accesslog = "-"
loglevel = "info"

reload = CONFIG_NAME == "dev"
