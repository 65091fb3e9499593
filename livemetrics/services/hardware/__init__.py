from .system_probe import HardwareProbe

__all__ = ["HardwareProbe"]
