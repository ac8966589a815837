"""Core package exposing shared configuration helpers."""

from .config import JudgeConfig, PollingConfig, Settings, get_settings

__all__ = ["get_settings", "Settings", "JudgeConfig", "PollingConfig"]
