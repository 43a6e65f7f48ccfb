"""Configuration file loading and environment overrides."""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from aipack.models import AiPackConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "aipack.toml"
CONFIG_ENV_VAR = "AIPACK_CONFIG"
ABS_ROOT_ENV_VAR = "ABS_ROOT"


class ConfigLoader:
    """Loads and validates aipack configuration from TOML files."""

    def __init__(self, project_root: Optional[Path] = None, config_path: Optional[Path] = None):
        """Initialize config loader.

        Args:
            project_root: Project root directory. Defaults to the current directory.
            config_path: Path to config file. If None, searches standard locations.
        """
        self.project_root = project_root or Path.cwd()
        self.config_path = config_path or self._find_config_file()
        self.config: Optional[AiPackConfig] = None

    def load(self) -> AiPackConfig:
        """Load the configuration file, falling back to defaults.

        A missing config file is not an error: every setting has a default.

        Returns:
            Loaded AiPackConfig object

        Raises:
            ValueError: If the config file exists but is invalid
        """
        if self.config_path is None or not self.config_path.exists():
            logger.debug("No config file found, using defaults")
            raw_config: dict[str, Any] = {}
        else:
            try:
                with open(self.config_path, "rb") as f:
                    raw_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ValueError(f"Invalid TOML syntax in config file {self.config_path}: {e}")
            logger.debug("Loaded config from %s", self.config_path)

        expanded_config = self._expand_env_vars(raw_config)

        try:
            self.config = AiPackConfig(**expanded_config)
        except Exception as e:
            raise ValueError(f"Invalid configuration structure: {e}")

        self.apply_env_overrides(self.config)
        return self.config

    def _find_config_file(self) -> Optional[Path]:
        """Find the config file in standard locations.

        Returns:
            Path to config file, or None if none exists

        Searches:
            1. AIPACK_CONFIG environment variable
            2. Project root
            3. Script directory
        """
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        root_config = self.project_root / DEFAULT_CONFIG_NAME
        if root_config.exists():
            return root_config

        script_config = Path(__file__).parent.parent / DEFAULT_CONFIG_NAME
        if script_config.exists():
            return script_config

        return None

    def _expand_env_vars(self, config: dict[str, Any]) -> dict[str, Any]:
        """Recursively expand environment variables in config values.

        Supports ${VAR_NAME} syntax. Unknown variables are left as-is.

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with expanded variables
        """

        def expand_value(value: Any) -> Any:
            if isinstance(value, str):
                pattern = r"\$\{([^}]+)\}"

                def replace_var(match: re.Match) -> str:
                    return os.getenv(match.group(1), match.group(0))

                return re.sub(pattern, replace_var, value)

            elif isinstance(value, dict):
                return {k: expand_value(v) for k, v in value.items()}

            elif isinstance(value, list):
                return [expand_value(item) for item in value]

            else:
                return value

        return expand_value(config)

    def apply_env_overrides(self, config: AiPackConfig) -> None:
        """Apply environment toggles on top of the file configuration.

        ABS_ROOT=1 lists absolute paths in the tree report, ABS_ROOT=0 relative ones.
        """
        abs_root = os.getenv(ABS_ROOT_ENV_VAR)
        if abs_root is None or abs_root.strip() == "":
            return
        config.output.absolute_tree_paths = abs_root.strip() == "1"


def load_config(project_root: Path, config_path: Optional[Path] = None) -> AiPackConfig:
    """Load configuration, degrading to defaults when the file is unusable.

    Args:
        project_root: Project root directory
        config_path: Explicit config file, if any

    Returns:
        The loaded configuration, or the defaults (plus env overrides) on error
    """
    loader = ConfigLoader(project_root=project_root, config_path=config_path)
    try:
        return loader.load()
    except ValueError as e:
        logger.error("%s; continuing with default configuration", e)
        config = AiPackConfig()
        loader.apply_env_overrides(config)
        return config
