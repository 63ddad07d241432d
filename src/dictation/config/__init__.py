from .settings import DictationSettings, create_example_env_file, load_config, setup_logging

__all__ = ["DictationSettings", "create_example_env_file", "load_config", "setup_logging"]
