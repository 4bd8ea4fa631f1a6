import uvicorn

from .config import get_settings
from .server import create_app

app = create_app()


def main():
    settings = get_settings()
    uvicorn.run(
        "nlq_dashboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development_mode(),
    )


if __name__ == "__main__":
    main()
