import sitemapper.utils.i18n  # noqa:F401

from easydict import EasyDict as edict

from .env import load_cfg_from_env


def test_load_cfg_from_env():
    input_dict = {"SITEMAPPER_a": "2", "SITEMAPPER_export__quality": "3"}
    loaded = load_cfg_from_env(edict(), input_dict)
    assert loaded.a == "2"
    assert loaded.export.quality == "3"


def test_load_cfg_from_env_keeps_default_types():
    cfg = edict(export=edict(supersample=2, strict=False, ratio=0.5))
    env = {
        "SITEMAPPER_EXPORT__SUPERSAMPLE": "3",
        "SITEMAPPER_EXPORT__STRICT": "yes",
        "SITEMAPPER_EXPORT__RATIO": "0.25",
        "HOME": "/root",
    }
    loaded = load_cfg_from_env(cfg, env)
    assert loaded.export.supersample == 3
    assert loaded.export.strict is True
    assert loaded.export.ratio == 0.25
    assert "home" not in loaded
