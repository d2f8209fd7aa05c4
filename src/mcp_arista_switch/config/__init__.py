"""Application settings and switch inventory."""
from .settings import Settings, EAPISettings, DatabaseSettings, LoggingSettings, WorkflowSettings
from .inventory import SwitchInventory

__all__ = [
    "Settings",
    "EAPISettings",
    "DatabaseSettings",
    "LoggingSettings",
    "WorkflowSettings",
    "SwitchInventory",
]
