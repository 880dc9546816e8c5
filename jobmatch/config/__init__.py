from .settings import Settings
from .logging_config import configure_logging

settings = Settings()

__all__ = ["settings", "Settings", "configure_logging"]
