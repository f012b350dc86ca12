import sentry_sdk
from sentry_sdk.integrations.typer import TyperIntegration

from ndvi_timeseries.cli import app
from ndvi_timeseries.common.config import Config

if Config.is_sentry_enabled:
    sentry_sdk.init(
        dsn=Config.sentry_dsn,
        environment=Config.env.value,
        integrations=[TyperIntegration()],
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
