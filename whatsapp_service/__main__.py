"""Run the session service: ``python -m whatsapp_service``."""

import uvicorn

from .api.server import create_app
from .infrastructure.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
