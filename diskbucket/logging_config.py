from __future__ import annotations
import logging
from pathlib import Path
import yaml
from typing import Optional

from diskbucket.config import DEFAULT_CONFIG_PATH

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s]: %(message)s'


def configure_logging(config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for an application embedding diskbucket.

    The level comes from the `log_level` key of the bucket YAML config and
    defaults to WARNING when the file is missing or cannot be parsed.
    Returns the package logger.
    """
    level = logging.WARNING
    cfg_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if cfg_path.exists():
        try:
            with cfg_path.open('r', encoding='utf-8') as _f:
                _cfg = yaml.safe_load(_f) or {}
            _lvl = _cfg.get('log_level') if isinstance(_cfg, dict) else None
            if isinstance(_lvl, str):
                _numeric = getattr(logging, _lvl.upper(), None)
                if isinstance(_numeric, int):
                    level = _numeric
        except (OSError, yaml.YAMLError):
            # If config parse fails, fall back to default level
            level = logging.WARNING

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger('diskbucket')
    logger.setLevel(level)
    logger.info("diskbucket log level set to %s", logging.getLevelName(level))
    return logger
