"""Read the pipeline YAML configuration into validated models."""

from pathlib import Path

import pydantic_yaml

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Parse and validate a pipeline configuration file.

    Raises:
        FileNotFoundError: If config_path doesn't exist
        pydantic.ValidationError: If a setting is missing or invalid
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return pydantic_yaml.parse_yaml_file_as(PipelineConfig, config_path)

