from .settings import OplogSettings, get_settings, reload_settings

__all__ = ["OplogSettings", "get_settings", "reload_settings"]
