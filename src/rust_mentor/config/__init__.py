from .loader import load_settings
from .schema import ModelConfig, Settings

__all__ = ["load_settings", "ModelConfig", "Settings"]
