"""Run the gateway with uvicorn: python -m offline_gateway"""

import uvicorn

from offline_gateway.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "offline_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_dev and settings.reload,
    )


if __name__ == "__main__":
    main()
