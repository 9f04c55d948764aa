"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe `coursemarket.asgi:app`.
- Toute la configuration (conteneur, middlewares, routers) est centralisée dans coursemarket.app_setup.factory.
"""
from coursemarket.app_setup.factory import create_app

app = create_app()
