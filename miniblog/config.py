import copy
import enum
import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import miniblog.settings as default_settings

log = logging.getLogger(__name__)


class Environment(enum.Enum):
    """Hosting environment, resolved once when the application is built."""
    DEVELOPMENT = "Development"
    PRODUCTION = "Production"

    @classmethod
    def parse(cls, value: str) -> "Environment":
        if str(value).strip().lower() == cls.DEVELOPMENT.value.lower():
            return cls.DEVELOPMENT
        return cls.PRODUCTION


@dataclass
class BlogSettings:
    """Strongly-typed view of the 'blog' configuration section."""
    owner: str = "The Owner"
    name: str = "Miniblog"
    description: str = ""
    posts_per_page: int = 2
    comments_close_after_days: int = 10
    display_comments: bool = True

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> "BlogSettings":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in section.items():
            # Accept both 'postsPerPage' and 'posts_per_page' spellings.
            name = "".join(f"_{c.lower()}" if c.isupper() else c for c in key).lstrip("_")
            if name in known:
                values[name] = value
            else:
                log.warning(f"Unknown 'blog' setting '{key}'. Ignoring.")
        return cls(**values)


# Top-level JSON keys of the app-settings file and the settings they feed.
_SECTION_KEYS = {
    "forcessl": "FORCE_SSL",
    "environment": "ENVIRONMENT",
    "secret_key": "SECRET_KEY",
    "posts_dir": "POSTS_DIR",
}
_USER_KEYS = {
    "username": "USER_NAME",
    "password": "USER_PASSWORD_HASH",
    "salt": "USER_SALT",
}


class MergedSettings:
    """
    Merges default settings with JSON app-settings and explicit overrides.

    This class provides a unified, attribute-based access point for all
    application configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from the JSON app-settings file (`forcessl`, `blog`, `user`, ...).
    4. Keyword overrides passed to the constructor (used by tests and tooling).
    """

    def __init__(self, appsettings_path: Optional[Path] = None, **overrides: Any) -> None:
        """
        Initializes the settings object by loading defaults and overrides.

        :param appsettings_path: Path of the JSON app-settings file, defaults to APPSETTINGS_PATH.
        :param overrides: Uppercase setting names mapped to their values.
        """
        self._load_defaults()
        self.APPSETTINGS_PATH: Path = Path(appsettings_path or self.APPSETTINGS_PATH)
        self._load_appsettings()
        for key, value in overrides.items():
            self._apply(key, value)

    def _load_defaults(self) -> None:
        """
        Loads all uppercase attributes from the settings.py module as defaults.
        """
        for key in dir(default_settings):
            if key.isupper():
                # Dicts are copied so instances never share mutable defaults.
                setattr(self, key, copy.deepcopy(getattr(default_settings, key)))

    def _load_appsettings(self) -> None:
        """
        Loads and applies the JSON app-settings file, if present.

        Only keys mapping to names in `MODIFIABLE_SETTINGS` are applied.
        """
        if not self.APPSETTINGS_PATH.exists():
            return

        try:
            with self.APPSETTINGS_PATH.open('r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse app-settings file '{self.APPSETTINGS_PATH}': {e}")
            return

        log.info(f"Loading configuration from {self.APPSETTINGS_PATH}")
        for key, value in data.items():
            lowered = key.lower()
            if lowered == "blog" and isinstance(value, dict):
                self.BLOG.update(value)
            elif lowered == "user" and isinstance(value, dict):
                for user_key, setting in _USER_KEYS.items():
                    if user_key in value:
                        self._apply(setting, value[user_key])
            elif lowered in _SECTION_KEYS:
                self._apply(_SECTION_KEYS[lowered], value)
            elif key.isupper():
                self._apply(key, value)
            else:
                log.warning(f"App-settings key '{key}' is not recognised. Ignoring.")

    def _apply(self, key: str, value: Any) -> None:
        if not hasattr(self, key):
            log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
            return
        if key not in self.MODIFIABLE_SETTINGS:
            log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
            return

        # Coerce path strings back to Path objects if necessary
        original_value = getattr(self, key)
        if isinstance(original_value, Path):
            value = Path(value)
        elif isinstance(original_value, bool) and isinstance(value, str):
            value = value.lower() in ('true', '1', 't')
        setattr(self, key, value)
        log.debug(f"Overridden setting: {key}")

    @property
    def environment(self) -> Environment:
        return Environment.parse(self.ENVIRONMENT)

    def blog_settings(self) -> BlogSettings:
        """Binds the 'blog' section to a `BlogSettings` instance."""
        return BlogSettings.from_section(self.BLOG)

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, item, default)


# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
