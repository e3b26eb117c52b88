"""配置加载（环境变量 / .env / config.yaml）。"""

from toolagent.config.settings import AgentSettings, Settings, settings

__all__ = ["AgentSettings", "Settings", "settings"]
