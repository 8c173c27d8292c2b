import os
from typing import Dict, List
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuration management"""

    # Database
    DB_PATH = os.getenv("NOTIFICATIONS_DB_PATH", "data/notifications.db")

    # Clinic details used when rendering templates
    CLINIC_NAME = os.getenv("CLINIC_NAME", "Clínica Essencial")
    CLINIC_ADDRESS = os.getenv("CLINIC_ADDRESS", "")
    CLINIC_PHONE = os.getenv("CLINIC_PHONE", "")
    CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Sao_Paulo")
    DATE_DISPLAY_FORMAT = os.getenv("DATE_DISPLAY_FORMAT", "%d/%m/%Y")

    # Scheduler
    SCHEDULER_INTERVAL_MINUTES = int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "5"))
    SCHEDULER_LOCK_PATH = os.getenv("SCHEDULER_LOCK_PATH", "data/notification_scheduler.lock")

    # File Paths
    EXPORTS_PATH = os.getenv("EXPORTS_PATH", "exports")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Provider credentials, by channel
    PROVIDER_ENV_VARS = {
        "WHATSAPP": ["WHATSAPP_API_URL", "WHATSAPP_API_KEY", "WHATSAPP_FROM_NUMBER"],
        "SMS": ["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"],
        "EMAIL": ["SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "FROM_EMAIL"],
    }

    @classmethod
    def clinic_info(cls) -> Dict[str, str]:
        return {
            "clinic": cls.CLINIC_NAME,
            "address": cls.CLINIC_ADDRESS,
            "phone": cls.CLINIC_PHONE,
        }

    @classmethod
    def missing_provider_settings(cls) -> Dict[str, List[str]]:
        """Return the unset environment variables per channel"""
        missing = {}
        for channel, names in cls.PROVIDER_ENV_VARS.items():
            absent = [name for name in names if not os.getenv(name)]
            if absent:
                missing[channel] = absent
        return missing

    @classmethod
    def validate_config(cls) -> bool:
        """Validate that at least one channel provider has credentials"""
        missing = cls.missing_provider_settings()
        for channel, names in missing.items():
            print(f"{channel} provider disabled, missing: {', '.join(names)}")
        if len(missing) == len(cls.PROVIDER_ENV_VARS):
            print(f"No notification provider configured: {len(missing)} channels missing credentials")
            return False

        return True

# Global config instance
config = Config()
