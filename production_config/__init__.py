"""
production_config -- single public entrypoint for workflow configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It loads the YAML file, parses it into a frozen
    ``WorkflowConfig`` and emits a ``workflow_config_loaded`` trace line
    carrying the checksum.

Architecture position:
    Sits above ``production_kernel`` and below ``production_services``.
    The kernel MUST NEVER import from ``production_config``.

Failure modes:
    - ``FileNotFoundError`` -- the config file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or invalid fields.
"""

from __future__ import annotations

from pathlib import Path

from production_config.loader import load_yaml_file, parse_workflow_config
from production_config.schema import SalesChannelDef, WorkflowConfig
from production_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "workflow.yaml"

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SalesChannelDef",
    "WorkflowConfig",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> WorkflowConfig:
    """Load the workflow configuration.

    Args:
        config_path: Override path to a workflow YAML file.  Defaults to
            production_config/defaults/workflow.yaml.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = parse_workflow_config(load_yaml_file(path))

    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "sales_channel_count": len(config.sales_channels),
            "config_path": str(path),
        },
    )
    return config
