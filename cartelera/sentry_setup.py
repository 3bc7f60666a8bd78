import logging

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.pymongo import PyMongoIntegration

from cartelera.config import settings

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initializes the Sentry SDK if a DSN is configured.
    Returns True when Sentry was initialized.
    """
    sentry_settings = settings.sentry

    if not sentry_settings.dsn:
        logger.debug("Sentry DSN not found in settings. Sentry SDK will not be initialized.")
        return False

    effective_environment = sentry_settings.environment or settings.environment
    logger.info(f"Initializing Sentry SDK for environment: '{effective_environment}'.")

    sentry_sdk.init(
        dsn=str(sentry_settings.dsn),
        environment=effective_environment,
        traces_sample_rate=sentry_settings.traces_sample_rate,
        integrations=[
            LoggingIntegration(
                level=logging.INFO,        # breadcrumbs
                event_level=logging.ERROR  # events
            ),
            PyMongoIntegration(),
        ],
    )
    return True
