"""ASGI entrypoint: `uvicorn roomledger.api.app:app` (role from APP_ROLE)."""

from roomledger.api.factory import create_app

app = create_app()
