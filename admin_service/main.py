"""
ASGI Entry Point

Module-level application for uvicorn/gunicorn.
"""

from admin_service.config import get_settings
from admin_service.serving.api.main import create_app

settings = get_settings()
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
