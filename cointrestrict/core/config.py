'''
Configuration management for cointrestrict.

Settings are layered:
1. Defaults built into the dataclasses below
2. A user JSON file (~/.cointrestrict/cointrestrict_config.json)
3. Environment variables COINTRESTRICT_<SECTION>_<OPTION>
4. Runtime modifications through set_config

The annealing and L-BFGS sections hold the optimizer schedule used by
estimate_restricted_cointegration; RestrictionOptions reads its defaults
from here when an option is not given explicitly.
'''

import os
import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Optional

from .exceptions import ConfigurationError
from .types import ConfigDict, LogLevel

# Set up module-level logger
logger = logging.getLogger("cointrestrict.core.config")

CONFIG_ENV_PREFIX = "COINTRESTRICT_"
DEFAULT_CONFIG_FILENAME = "cointrestrict_config.json"
USER_CONFIG_DIR_ENV = "COINTRESTRICT_CONFIG_DIR"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class CoreConfig:
    """
    Core configuration settings.

    Attributes:
        user_config_dir: Directory holding the user configuration file
        random_seed: Seed for the annealing and Jacobian-probe draws (None for fresh entropy)
    """
    user_config_dir: Path = field(default_factory=lambda: Path.home() / ".cointrestrict")
    random_seed: Optional[int] = None


@dataclass
class NumericalConfig:
    """
    Numerical tolerances.

    Attributes:
        rank_tolerance: Relative singular-value cutoff for rank and nullspace computations
        zero_tolerance: Entries with absolute value below this count as zero
        gradient_step: Step for the two-sided numerical gradient (None selects it from x)
    """
    rank_tolerance: float = 1e-10
    zero_tolerance: float = 1e-12
    gradient_step: Optional[float] = None


@dataclass
class AnnealingConfig:
    """
    Simulated annealing schedule.

    Attributes:
        iterations: Number of annealing steps
        initial_temperature: Starting temperature
        initial_radius: Starting scale of the random-normal step
        cooling: Multiplicative temperature decay per step
        shrink: Multiplicative radius decay per step
        flat_tolerance: fbest - fworst below this flags a flat likelihood
    """
    iterations: int = 4096
    initial_temperature: float = 1.0
    initial_radius: float = 1.0
    cooling: float = 0.999
    shrink: float = 0.9999
    flat_tolerance: float = 1e-9


@dataclass
class LBFGSConfig:
    """
    Quasi-Newton refinement settings.

    Attributes:
        max_iterations: Iteration cap
        reltol: Relative reduction in the objective that stops the search
        memory: Number of correction pairs kept by L-BFGS
    """
    max_iterations: int = 4000
    reltol: float = 1e-11
    memory: int = 10


@dataclass
class OutputConfig:
    """
    Report formatting.

    Attributes:
        coefficient_width: Column width of the cointegrating-vector table
        significant_digits: Significant digits printed for coefficients
        label_width: Width of the variable-name column
    """
    coefficient_width: int = 12
    significant_digits: int = 5
    label_width: int = 12


@dataclass
class LoggingConfig:
    """
    Logging of the package logger.

    Attributes:
        log_level: Level of the "cointrestrict" logger
        log_format: Format string of the console handler
        console_logging: Attach a console handler to the package logger
    """
    log_level: LogLevel = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    console_logging: bool = True


@dataclass
class CointRestrictConfig:
    """All configuration sections, keyed by attribute name."""
    core: CoreConfig = field(default_factory=CoreConfig)
    numerical: NumericalConfig = field(default_factory=NumericalConfig)
    annealing: AnnealingConfig = field(default_factory=AnnealingConfig)
    lbfgs: LBFGSConfig = field(default_factory=LBFGSConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Range checks applied when the file and environment layers are loaded:
# option -> (predicate, description of the admissible range)
_CONSTRAINTS = {
    "iterations": (lambda v: v >= 0, "must be non-negative"),
    "max_iterations": (lambda v: v > 0, "must be positive"),
    "memory": (lambda v: v > 0, "must be positive"),
    "cooling": (lambda v: 0 < v <= 1, "must be in (0, 1]"),
    "shrink": (lambda v: 0 < v <= 1, "must be in (0, 1]"),
    "reltol": (lambda v: 0 < v < 1, "must be in (0, 1)"),
    "rank_tolerance": (lambda v: 0 < v < 1, "must be in (0, 1)"),
    "zero_tolerance": (lambda v: 0 < v < 1, "must be in (0, 1)"),
    "flat_tolerance": (lambda v: 0 < v < 1, "must be in (0, 1)"),
    "gradient_step": (lambda v: v > 0, "must be positive"),
    "initial_temperature": (lambda v: v > 0, "must be positive"),
    "initial_radius": (lambda v: v > 0, "must be positive"),
    "coefficient_width": (lambda v: v > 0, "must be positive"),
    "label_width": (lambda v: v >= 0, "must be non-negative"),
    "significant_digits": (lambda v: 1 <= v <= 16, "must be between 1 and 16"),
    "log_level": (lambda v: v in _LOG_LEVELS, f"must be one of {', '.join(_LOG_LEVELS)}"),
}


class ConfigManager:
    """
    Configuration manager.

    Holds the active CointRestrictConfig and applies the file, environment
    and runtime layers on top of the built-in defaults. A module-level
    instance backs get_config / set_config; fresh instances are independent.
    """

    def __init__(self):
        self._config = CointRestrictConfig()
        self._initialized = False
        self._config_file: Optional[Path] = None
        self._modified_keys = set()

    def initialize(self) -> None:
        """
        Load the file and environment layers, configure the package logger
        and validate the result. Repeated calls do nothing.
        """
        if self._initialized:
            return

        env_dir = os.environ.get(USER_CONFIG_DIR_ENV)
        if env_dir:
            self._config.core.user_config_dir = Path(env_dir)
        self._config_file = self._config.core.user_config_dir / DEFAULT_CONFIG_FILENAME

        self._load_user_config()
        self._apply_env_overrides()
        self._validate_config()
        self._setup_logging()

        self._initialized = True
        logger.debug("Configuration manager initialized")

    def _load_user_config(self) -> None:
        if not self._config_file.exists():
            logger.debug(f"No user configuration at {self._config_file}")
            return

        try:
            with open(self._config_file, 'r') as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self._config_file}: {e}")
            return

        self._update_from_dict(user_config)
        logger.debug(f"Loaded user configuration from {self._config_file}")

    def _apply_env_overrides(self) -> None:
        """Apply COINTRESTRICT_<SECTION>_<OPTION> environment variables."""
        for env_var, value in os.environ.items():
            if not env_var.startswith(CONFIG_ENV_PREFIX) or env_var == USER_CONFIG_DIR_ENV:
                continue

            section, _, option = env_var[len(CONFIG_ENV_PREFIX):].lower().partition('_')
            if not self.has_section(section):
                continue
            section_obj = getattr(self._config, section)
            if not hasattr(section_obj, option):
                continue

            try:
                typed_value = self._coerce(getattr(section_obj, option), value, from_env=True)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring {env_var}={value!r}: {e}")
                continue

            setattr(section_obj, option, typed_value)
            logger.debug(f"Applied environment override {env_var}={value}")

    @staticmethod
    def _coerce(current_value: Any, value: Any, from_env: bool = False) -> Any:
        """Convert value to the type of current_value."""
        if value is None:
            return None
        if isinstance(current_value, bool) and isinstance(value, str):
            return value.lower() in ('true', 'yes', '1', 'y')
        if isinstance(current_value, Path):
            return Path(value)
        if current_value is None:
            # Options defaulting to None are numeric; the environment gives strings
            if from_env and isinstance(value, str):
                if value.lower() in ('none', ''):
                    return None
                try:
                    return int(value)
                except ValueError:
                    return float(value)
            return value
        if type(current_value) is not type(value):
            return type(current_value)(value)
        return value

    def _setup_logging(self) -> None:
        """Configure the "cointrestrict" logger from the logging section."""
        package_logger = logging.getLogger("cointrestrict")
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)

        settings = self._config.logging
        package_logger.setLevel(getattr(logging, settings.log_level))

        if settings.console_logging:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(settings.log_format))
            package_logger.addHandler(console_handler)

    def _validate_config(self) -> None:
        """Reset out-of-range values to their defaults, logging each reset."""
        for section_name in self.get_sections():
            section = getattr(self._config, section_name)
            defaults = type(section)()
            for f in fields(section):
                value = getattr(section, f.name)
                check = _CONSTRAINTS.get(f.name)
                if value is None or check is None:
                    continue
                predicate, description = check
                try:
                    valid = predicate(value)
                except TypeError:
                    valid = False
                if not valid:
                    logger.warning(f"Invalid {section_name}.{f.name}: {value!r}, {description}; "
                                   f"using {getattr(defaults, f.name)!r}")
                    setattr(section, f.name, getattr(defaults, f.name))

    def _update_from_dict(self, config_dict: ConfigDict) -> None:
        """
        Update the configuration from a dictionary of sections.

        Unknown sections and options are skipped with a warning.
        """
        for section_name, section_dict in config_dict.items():
            if not self.has_section(section_name):
                logger.warning(f"Unknown configuration section: {section_name}")
                continue

            section = getattr(self._config, section_name)
            for option_name, option_value in section_dict.items():
                if not hasattr(section, option_name):
                    logger.warning(f"Unknown configuration option: {section_name}.{option_name}")
                    continue
                if isinstance(getattr(section, option_name), Path):
                    option_value = Path(option_value)
                setattr(section, option_name, option_value)

    def save_user_config(self) -> None:
        """Write the current configuration to the user configuration file."""
        if self._config_file is None:
            logger.warning("Configuration manager is not initialized; nothing saved")
            return

        try:
            self._config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._config_file, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write {self._config_file}: {e}")
            return

        logger.debug(f"Saved user configuration to {self._config_file}")

    def to_dict(self) -> ConfigDict:
        """Configuration as a dictionary of sections, with paths as strings."""
        result = {}
        for section_name in self.get_sections():
            section = getattr(self._config, section_name)
            section_dict = {}
            for f in fields(section):
                value = getattr(section, f.name)
                section_dict[f.name] = str(value) if isinstance(value, Path) else value
            result[section_name] = section_dict
        return result

    def get(self, section: str, option: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            section: The configuration section
            option: The configuration option
            default: Returned when the section or option does not exist

        Returns:
            The configuration value, or the default
        """
        section_obj = getattr(self._config, section, None)
        if section_obj is None or not hasattr(section_obj, option):
            return default
        return getattr(section_obj, option)

    def _require(self, section: str, option: Optional[str] = None, value: Any = None) -> None:
        setting = section if option is None else f"{section}.{option}"
        if not self.has_section(section):
            raise ConfigurationError(
                f"Unknown configuration section: {section}",
                setting=setting,
                value=value,
                issue="Section not found"
            )
        if option is not None and not hasattr(getattr(self._config, section), option):
            raise ConfigurationError(
                f"Unknown configuration option: {setting}",
                setting=setting,
                value=value,
                issue="Option not found"
            )

    def set(self, section: str, option: str, value: Any) -> None:
        """
        Set a configuration value, converting it to the option's type.

        Raises:
            ConfigurationError: If the section or option is not found, or the
                value cannot be converted
        """
        self._require(section, option, value)
        section_obj = getattr(self._config, section)

        try:
            typed_value = self._coerce(getattr(section_obj, option), value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Cannot set {section}.{option} to {value!r}",
                setting=f"{section}.{option}",
                value=value,
                issue=str(e)
            ) from e

        setattr(section_obj, option, typed_value)
        self._modified_keys.add(f"{section}.{option}")
        logger.debug(f"Set {section}.{option}={typed_value!r}")

    def reset(self, section: Optional[str] = None, option: Optional[str] = None) -> None:
        """
        Reset configuration to default values.

        Args:
            section: The section to reset, or None to reset everything
            option: The option to reset, or None to reset the whole section

        Raises:
            ConfigurationError: If the section or option is not found
        """
        if section is None:
            user_dir = self._config.core.user_config_dir
            self._config = CointRestrictConfig()
            self._config.core.user_config_dir = user_dir
            self._modified_keys.clear()
            logger.debug("Reset all configuration to defaults")
            return

        self._require(section, option)
        defaults = getattr(CointRestrictConfig(), section)

        if option is None:
            setattr(self._config, section, defaults)
            self._modified_keys = {k for k in self._modified_keys if not k.startswith(f"{section}.")}
        else:
            setattr(getattr(self._config, section), option, getattr(defaults, option))
            self._modified_keys.discard(f"{section}.{option}")
        logger.debug(f"Reset {section if option is None else f'{section}.{option}'}")

    def is_modified(self, section: str, option: str) -> bool:
        """Whether an option was changed through set() since the last reset."""
        return f"{section}.{option}" in self._modified_keys

    def has_section(self, section: str) -> bool:
        return section in CointRestrictConfig.__dataclass_fields__

    def get_sections(self) -> List[str]:
        return list(CointRestrictConfig.__dataclass_fields__)

    def get_config_file(self) -> Optional[Path]:
        """Path of the user configuration file (None before initialize())."""
        return self._config_file


# Singleton instance of the configuration manager
_config_manager = ConfigManager()


def initialize_config() -> None:
    """Initialize the configuration system."""
    _config_manager.initialize()


def get_config(section: str, option: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        section: The configuration section
        option: The configuration option
        default: Returned when the section or option does not exist

    Returns:
        The configuration value, or the default
    """
    initialize_config()
    return _config_manager.get(section, option, default)


def set_config(section: str, option: str, value: Any) -> None:
    """
    Set a configuration value.

    Raises:
        ConfigurationError: If the section or option is not found
    """
    initialize_config()
    _config_manager.set(section, option, value)


def reset_config(section: Optional[str] = None, option: Optional[str] = None) -> None:
    """
    Reset configuration to default values.

    Raises:
        ConfigurationError: If the section or option is not found
    """
    initialize_config()
    _config_manager.reset(section, option)


def save_config() -> None:
    """Save the current configuration to the user configuration file."""
    initialize_config()
    _config_manager.save_user_config()


def get_config_manager() -> ConfigManager:
    """Return the module-level configuration manager."""
    initialize_config()
    return _config_manager
