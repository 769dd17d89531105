import json
from typing import Dict, Any, List
from pathlib import Path

class Config:
    """Configuration manager for business rules kept in core/config.json (shipped as package data)"""

    def __init__(self, config_file: str = "core/config.json"):
        self.config_file = config_file
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file"""
        config_path = Path(__file__).parent / self.config_file

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                config = json.load(f)

            return config
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)"""
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_time_slots(self) -> List[str]:
        """Ordered special-collection slot labels"""
        return list(self.get("special_collections.time_slots", []))

    def get_slot_limit(self) -> int:
        """Maximum bookings per slot per day"""
        return int(self.get("special_collections.slot_limit", 5))

    def get_otp_config(self) -> Dict[str, Any]:
        """Get password reset OTP configuration"""
        return self._config.get("password_reset", {})

    def get_otp_expires_minutes(self) -> int:
        return int(self.get_otp_config().get("otp_expires_minutes", 10))

    def get_pagination_config(self) -> Dict[str, Any]:
        return self._config.get("pagination", {})

# Global configuration instance
config = Config()
