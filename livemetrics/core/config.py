import os


class Settings:
    # Project Settings
    PROJECT_NAME: str = "Live Metrics"
    VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Dashboard Settings
    DASHBOARD_UPS: int = int(os.getenv("DASHBOARD_UPS", 32))
    DASHBOARD_PREFIX: str = os.getenv("DASHBOARD_PREFIX", "--------------- Metrics ---------------\n")
    DASHBOARD_SUFFIX: str = os.getenv("DASHBOARD_SUFFIX", "---------------------------------------\n")

    # Hardware Probe Settings
    HARDWARE_PROBE_INTERVAL_MS: int = int(os.getenv("HARDWARE_PROBE_INTERVAL_MS", 300))

    # Logging Settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
    LOG_FILE: str = os.getenv("LOG_FILE", "")


settings = Settings()
