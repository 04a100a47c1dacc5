"""
Configuration Validation Module
Validates call-control settings and the directory on startup
"""
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass

from callbot.core.config import Settings
from callbot.domain.models.directory import Directory, DirectoryRole
from callbot.domain.errors import DirectoryExhaustedError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    provider: str
    setting: str
    is_valid: bool
    message: str


class ConfigValidator:
    """
    Validates configuration at startup.

    Ensures the Graph application credentials and the directory roles are
    present before the application starts accepting requests.
    """

    # Required settings by concern
    REQUIRED_SETTINGS = {
        "graph": [
            ("tenant_id", "Graph application tenant"),
            ("client_id", "Graph application client id"),
            ("client_secret", "Graph application client secret"),
        ],
        "bot": [("bot_base_url", "Bot callback base URL")],
    }

    # Optional but recommended
    OPTIONAL_SETTINGS = {
        "meetings": [("organizer_user_id", "Online meeting organizer")],
    }

    def __init__(self, settings: Settings, directory: Directory, strict: bool = False):
        """
        Initialize validator.

        Args:
            settings: Loaded application settings
            directory: Loaded user directory
            strict: If True, treat warnings as errors
        """
        self.settings = settings
        self.directory = directory
        self.strict = strict
        self.results: List[ValidationResult] = []

    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate all configuration.

        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []

        simulated = self.settings.call_control_provider == "simulated"
        for provider, settings_list in self.REQUIRED_SETTINGS.items():
            for name, description in settings_list:
                value = getattr(self.settings, name, None)
                if value:
                    self._add_success(provider, name, f"{description} configured")
                elif simulated and provider == "graph":
                    self._add_warning(provider, name,
                        f"{description} not configured (simulated call control in use)")
                else:
                    self._add_error(provider, name,
                        f"{description} requires {name.upper()} to be set")

        for provider, settings_list in self.OPTIONAL_SETTINGS.items():
            for name, description in settings_list:
                if not getattr(self.settings, name, None):
                    self._add_warning(provider, name, f"{description} not configured (optional)")
                else:
                    self._add_success(provider, name, f"{description} configured")

        # Roles are resolved lazily at call time; missing ones only warn here,
        # even in strict mode
        for role in DirectoryRole:
            try:
                user = self.directory.get(role)
            except DirectoryExhaustedError as e:
                self._add_warning("directory", role.value, f"{e.message} (optional at startup)")
            else:
                self._add_success("directory", role.value, f"{role.value} -> {user.display_name}")

        # Determine overall validity
        errors = [r for r in self.results if not r.is_valid and "optional" not in r.message.lower()]
        all_valid = len(errors) == 0

        return all_valid, self.results

    def _add_success(self, provider: str, setting: str, message: str):
        """Add successful validation result."""
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=True,
            message=message
        ))

    def _add_error(self, provider: str, setting: str, message: str):
        """Add error validation result."""
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=False,
            message=message
        ))

    def _add_warning(self, provider: str, setting: str, message: str):
        """Add warning validation result."""
        self.results.append(ValidationResult(
            provider=provider,
            setting=setting,
            is_valid=not self.strict,  # Warnings become errors in strict mode
            message=f"WARNING: {message}"
        ))

    def log_results(self):
        """Log all validation results."""
        errors = [r for r in self.results if not r.is_valid]
        warnings = [r for r in self.results if r.is_valid and "WARNING" in r.message]
        successes = [r for r in self.results if r.is_valid and "WARNING" not in r.message]

        if successes:
            logger.info("Configuration validated:")
            for r in successes:
                logger.info(f"  ✓ [{r.provider}] {r.message}")

        if warnings:
            for r in warnings:
                logger.warning(f"  ⚠ [{r.provider}] {r.message}")

        if errors:
            logger.error("Configuration errors:")
            for r in errors:
                logger.error(f"  ✗ [{r.provider}] {r.message}")

    def get_error_summary(self) -> Optional[str]:
        """Get summary of errors for exception message."""
        errors = [r for r in self.results if not r.is_valid and "optional" not in r.message.lower()]
        if not errors:
            return None

        lines = ["Configuration errors:"]
        for r in errors:
            lines.append(f"  - {r.setting}: {r.message}")
        return "\n".join(lines)


def validate_config_on_startup(settings: Settings, directory: Directory, strict: bool = False) -> None:
    """
    Validate configuration at startup.

    Call this from the FastAPI lifespan.

    Args:
        settings: Loaded application settings
        directory: Loaded user directory
        strict: If True, fail on warnings too

    Raises:
        RuntimeError: If required configuration is missing
    """
    validator = ConfigValidator(settings, directory, strict=strict)
    all_valid, results = validator.validate_all()
    validator.log_results()

    if not all_valid:
        error_msg = validator.get_error_summary()
        raise RuntimeError(error_msg)

    logger.info("All configuration validated successfully")
