"""
Configuration management and loading.

Reads the diary's optional config file from the data directory. Every hook
invocation loads it fresh; nothing is cached between processes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from claw_diary.core.pricing import PRICING_TABLE, ModelPricing, PricingTable
from claw_diary.storage.paths import get_data_dir

logger = logging.getLogger(__name__)

# Searched in order; JSON is a subset the YAML loader accepts.
CONFIG_FILENAMES = ("config.yaml", "config.yml", "config.json")


class RecordingLevel(Enum):
    """How much detail the collector persists per event."""
    FULL = "full"
    SUMMARY = "summary"  # no tool arguments, no output previews
    MINIMAL = "minimal"  # session start/end only


@dataclass(frozen=True)
class DiaryConfig:
    """Complete diary configuration."""
    data_dir: Path
    recording_level: RecordingLevel = RecordingLevel.FULL
    custom_pricing: Dict[str, ModelPricing] = field(default_factory=dict)

    @property
    def pricing_table(self) -> PricingTable:
        """Built-in pricing with ``custom_pricing`` merged over it."""
        return PRICING_TABLE.merged(self.custom_pricing)


def load_config(data_dir: Optional[Path] = None) -> DiaryConfig:
    """Load the diary configuration.

    A missing or malformed file yields the defaults. An individual field that
    fails validation falls back to its default and is logged, so a typo in
    one setting never stops the collector.

    Args:
        data_dir: Directory holding the config file (default data dir if omitted)

    Returns:
        DiaryConfig with defaults filled in
    """
    root = Path(data_dir) if data_dir is not None else get_data_dir()
    defaults = DiaryConfig(data_dir=root)

    config_path = _find_config_file(root)
    if config_path is None:
        return defaults

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw_config = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_path, e)
        return defaults

    if not isinstance(raw_config, dict):
        if raw_config is not None:
            logger.warning("Ignoring config file %s: top level must be a mapping", config_path)
        return defaults

    return DiaryConfig(
        data_dir=_parse_data_dir(raw_config.get('dataDir'), root),
        recording_level=_parse_recording_level(raw_config.get('recordingLevel')),
        custom_pricing=_parse_custom_pricing(raw_config.get('customPricing')),
    )


def _find_config_file(root: Path) -> Optional[Path]:
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def _parse_data_dir(value: Any, default: Path) -> Path:
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        logger.warning("'dataDir' must be a string, using %s", default)
        return default
    return Path(value).expanduser()


def _parse_recording_level(value: Any) -> RecordingLevel:
    if value is None:
        return RecordingLevel.FULL
    if not isinstance(value, str):
        logger.warning("'recordingLevel' must be a string, using 'full'")
        return RecordingLevel.FULL
    try:
        return RecordingLevel(value.lower())
    except ValueError:
        valid_levels = [level.value for level in RecordingLevel]
        logger.warning("'recordingLevel' must be one of %s, using 'full'", valid_levels)
        return RecordingLevel.FULL


def _parse_custom_pricing(value: Any) -> Dict[str, ModelPricing]:
    """Parse ``customPricing``, skipping entries that fail validation.

    Args:
        value: Raw mapping of model name to ``{input, output}``

    Returns:
        Valid entries as ModelPricing keyed by model name
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("'customPricing' must be a mapping, ignoring it")
        return {}

    prices = {}
    for model, entry in value.items():
        if not isinstance(entry, dict):
            logger.warning("customPricing.%s must be a mapping, skipping", model)
            continue
        input_price = entry.get('input')
        output_price = entry.get('output')
        if not _is_price(input_price) or not _is_price(output_price):
            logger.warning("customPricing.%s needs numeric 'input' and 'output' >= 0, skipping", model)
            continue
        prices[str(model)] = ModelPricing(
            input_per_million=float(input_price),
            output_per_million=float(output_price),
        )
    return prices


def _is_price(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0
