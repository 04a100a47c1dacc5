"""
Configuration Management
Loads settings from environment variables and the YAML directory files
"""
import yaml
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Settings
    api_prefix: str = "/api/v1"
    callback_path: str = "/api/v1/callback"

    # Graph application (client-credential session)
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    bot_base_url: str = "http://localhost:8000"
    organizer_user_id: Optional[str] = None  # owner of online meetings

    # Call control
    call_control_provider: str = "graph"  # graph | simulated
    graph_timeout_seconds: float = 30.0

    # Follow-up actions
    transfer_delay_seconds: float = 15.0
    invite_delay_seconds: float = 10.0
    action_trigger: str = "fixed_delay"  # fixed_delay | state_watch
    state_watch_timeout_seconds: float = 60.0
    state_poll_interval_seconds: float = 2.0

    # Online meetings
    meeting_subject: str = "Calling bot meeting"
    meeting_duration_minutes: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def callback_uri(self) -> str:
        """Notification URL handed to the platform for every call"""
        return f"{self.bot_base_url.rstrip('/')}{self.callback_path}"

    @property
    def has_graph_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        # Load default config if exists
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        # Load environment-specific config
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        # Substitute environment variables
        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Any) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        items = config.items() if isinstance(config, dict) else enumerate(config)
        for key, value in list(items):
            if isinstance(value, (dict, list)):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("directory.roles.transfer_target") -> "<user id>"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value
