"""AI 函数配置。

本模块将“逻辑函数名”与“部署的函数名”解耦：

- 逻辑名（logical_name）：代码里使用的统一名称，例如 "assistant"。
- 部署名：托管后端上实际的 Edge Function 名称，例如 "crm-assistant"，
  可以通过 settings 中对应字段覆盖。

上层只关心逻辑名，具体路由到哪个函数由这里集中配置。"""

from dataclasses import dataclass
from typing import Mapping


@dataclass
class FunctionConfig:
    """单个 AI 函数的配置。"""

    logical_name: str
    default_name: str
    settings_key: str
    streaming: bool


ASSISTANT_FUNCTION = FunctionConfig(
    logical_name="assistant",
    default_name="crm-assistant",
    settings_key="assistant_function",
    streaming=True,
)

TASKS_FUNCTION = FunctionConfig(
    logical_name="tasks",
    default_name="task-ai",
    settings_key="task_function",
    streaming=False,
)


FUNCTION_REGISTRY: Mapping[str, FunctionConfig] = {
    "assistant": ASSISTANT_FUNCTION,
    "tasks": TASKS_FUNCTION,
}


def get_function_config(name: str) -> FunctionConfig:
    """根据逻辑名获取 FunctionConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in FUNCTION_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown function: {name!r}")


def function_url(cfg, name: str) -> str:
    """拼接函数完整 URL：{functions_url}/{部署名}。"""

    fn = get_function_config(name)
    deployed = getattr(cfg, fn.settings_key, None) or fn.default_name
    return f"{cfg.functions_url}/{deployed}"
