"""YAML 配置加载

使用示例:
    from yexam.config import AppSettings, ConfigLoader, load_yaml_config

    raw = ConfigLoader.load("config/settings.yaml")
    settings = load_yaml_config("config/settings.yaml", AppSettings, tree={"sort_order_step": 100})
"""

import os
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml

from yexam.log import get_logger

logger = get_logger()

SettingsT = TypeVar("SettingsT")


class ConfigLoader:
    """YAML 配置加载器，按文件绝对路径缓存解析结果"""

    _cache: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def resolve(config_path: str, base_dir: Optional[str] = None) -> str:
        """相对路径优先基于 base_dir，否则基于当前工作目录"""
        if not os.path.isabs(config_path) and base_dir:
            config_path = os.path.join(base_dir, config_path)
        return os.path.abspath(config_path)

    @classmethod
    def load(cls, config_path: str, base_dir: Optional[str] = None, use_cache: bool = True) -> Dict[str, Any]:
        """读取配置文件，空文件返回 {}

        Raises:
            FileNotFoundError: 文件不存在
            yaml.YAMLError: 内容不是合法 YAML
        """
        path = cls.resolve(config_path, base_dir)
        if use_cache and path in cls._cache:
            return cls._cache[path]

        if not os.path.isfile(path):
            raise FileNotFoundError(f"配置文件不存在: {path}")
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"已加载配置文件: {path}")

        if use_cache:
            cls._cache[path] = data
        return data

    @classmethod
    def reload(cls, config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """丢弃缓存后重新读取"""
        cls._cache.pop(cls.resolve(config_path, base_dir), None)
        return cls.load(config_path, base_dir)

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()

    @classmethod
    def get_cached_paths(cls) -> List[str]:
        return list(cls._cache)


def load_yaml_config(
    config_path: str,
    settings_class: Type[SettingsT],
    base_dir: Optional[str] = None,
    **overrides,
) -> SettingsT:
    """读取 YAML 并构造 Settings 实例

    overrides 按顶层键整体替换文件中的同名配置段，不修改缓存内容。
    """
    data = {**ConfigLoader.load(config_path, base_dir), **overrides}
    return settings_class(**data)
