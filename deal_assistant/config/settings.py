"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次递减。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ASSISTANT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 托管后端（Supabase 风格的 REST + Edge Functions） ----
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="托管后端的项目 URL，functions 与 rest 路径基于它拼接",
    )
    supabase_anon_key: Optional[str] = Field(default=None, description="匿名 API key")
    access_token: Optional[str] = Field(
        default=None,
        description="当前用户的会话 token；为空时使用 anon key 认证",
    )

    # ---- AI 函数 ----
    assistant_function: str = Field(default="crm-assistant", description="流式对话函数名")
    task_function: str = Field(default="task-ai", description="任务抽取函数名")
    default_user_role: str = Field(default="socio", description="抽取请求中附带的角色提示")
    default_ai_confidence: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="候选任务未给出 confidence 时写入审计事件的默认值",
    )

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("supabase_anon_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def functions_url(self) -> str:
        return f"{self.supabase_url}/functions/v1"

    @property
    def rest_url(self) -> str:
        return f"{self.supabase_url}/rest/v1"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
