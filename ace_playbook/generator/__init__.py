from .injection import ADDON_HEADER, inject_addon_into_system_prompt

__all__ = ["ADDON_HEADER", "inject_addon_into_system_prompt"]
