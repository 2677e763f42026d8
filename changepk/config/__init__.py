from .settings import VerifierSettings, load_env, load_settings

__all__ = ["VerifierSettings", "load_env", "load_settings"]
