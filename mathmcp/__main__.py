"""Run the gateway with uvicorn: python -m mathmcp"""

import uvicorn

from mathmcp.config import settings_from_env


def main() -> None:
    settings = settings_from_env()
    uvicorn.run(
        "mathmcp.gateway.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
