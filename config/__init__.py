"""Configuration module for PlayerValue-Pro.

Centralized configuration management using pydantic-settings. Every
tunable of the crawler (store, target page, concurrency, policies) is
read from the environment and validated at load time.
"""

from config.settings import GlobalConfig, get_config

__all__ = ["GlobalConfig", "get_config"]
