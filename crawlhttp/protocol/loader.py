"""Loading the protocol configuration from YAML."""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from crawlhttp.protocol.config import ProtocolConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


def _flatten(data: dict[str, object], prefix: str = "") -> dict[str, object]:
    """Flatten nested YAML mappings into dotted keys.

    ``{"http": {"timeout": 5000}}`` and ``{"http.timeout": 5000}`` both
    become ``{"http.timeout": 5000}``.
    """
    flat: dict[str, object] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_protocol_config(file_path: Path) -> ProtocolConfig:
    """Load a ProtocolConfig from a crawler YAML configuration file.

    Keys use the crawler's dotted naming and may be written flat or nested;
    keys this layer does not know are ignored, since the same file usually
    configures the rest of the crawler too.

    Args:
        file_path: Path to the YAML file.

    Returns:
        Validated ProtocolConfig.

    Raises:
        FileNotFoundError: If file does not exist.
        ConfigValidationError: If the YAML is invalid or values fail validation.
    """
    log = logger.bind(component="config", file_path=str(file_path))

    content = file_path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        log.error("config_yaml_invalid", error=str(e))
        raise ConfigValidationError(
            [{"loc": "", "msg": f"Invalid YAML: {e}", "type": "yaml_error"}],
            str(file_path),
        ) from e

    if not isinstance(parsed, dict):
        raise ConfigValidationError(
            [{"loc": "", "msg": "Top level must be a mapping", "type": "type_error"}],
            str(file_path),
        )

    try:
        config = ProtocolConfig.from_conf(_flatten(parsed))
    except ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(part) for part in err["loc"]),
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        log.error("config_validation_failed", error_count=len(errors))
        raise ConfigValidationError(errors, str(file_path)) from e
    except (TypeError, ValueError) as e:
        log.error("config_validation_failed", error_count=1)
        raise ConfigValidationError(
            [{"loc": "", "msg": str(e), "type": "value_error"}],
            str(file_path),
        ) from e

    log.info("config_loaded", use_proxy=config.use_proxy)
    return config
