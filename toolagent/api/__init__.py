"""对外 API。"""

from toolagent.api.service import get_default_executor, reset_default_executor, run_agent

__all__ = ["get_default_executor", "reset_default_executor", "run_agent"]
