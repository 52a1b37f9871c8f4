"""
Runtime configuration.

Defaults are kept in a nested EasyDict and can be overridden through
``SITEMAPPER_*`` environment variables (``__`` separates nesting levels).
"""

import copy
import os
from typing import Dict, Optional

from easydict import EasyDict as edict

from .utils.env import load_cfg_from_env

_DEFAULTS = dict(
    export=dict(
        supersample=2,
        jpeg_quality=92,
        background="#ffffff",
    ),
    report=dict(
        layout="cards",
        page_size="A4",
        max_photos=2,
    ),
    history=dict(
        max_size=100,
    ),
    view=dict(
        zoom_min=0.1,
        zoom_max=5.0,
        zoom_step=0.2,
        marker_scale_min=0.5,
        marker_scale_max=3.0,
        marker_scale_step=0.2,
    ),
    store=dict(
        root="~/.sitemapper/projects",
    ),
)

DEFAULT_CONFIG = edict(_DEFAULTS)


def load_config(env: Optional[Dict[str, str]] = None) -> edict:
    """
    Build a configuration object.

    Args:
        env: Mapping to read overrides from, defaults to ``os.environ``

    Returns:
        Fresh EasyDict, safe to mutate
    """
    cfg = edict(copy.deepcopy(_DEFAULTS))
    return load_cfg_from_env(cfg, os.environ if env is None else env)
