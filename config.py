"""Configuration management for privexec."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Any, ClassVar, Literal

import yaml
from pydantic import BaseModel, Field


class ShellConfig(BaseModel):
    program: str = "/bin/bash"
    timeout: float = 60.0
    kill_grace: float = 3.0
    user: str = ""
    output_type: Literal["stdout", "combined"] = "stdout"


class LoggingConfig(BaseModel):
    log_file: Path = Path("privexec.log")
    console_level: str = "INFO"


class Config(BaseModel):
    shell: ShellConfig = Field(default_factory=ShellConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    _instance: ClassVar["Config | None"] = None
    _lock: ClassVar[Lock] = Lock()

    @classmethod
    def load(cls, path: str | Path = "privexec.yaml") -> "Config":
        if cls._instance is not None:
            return cls._instance
        with cls._lock:
            if cls._instance is not None:
                return cls._instance

            payload: dict[str, Any] = {}
            cfg_path = Path(path)
            if cfg_path.exists():
                payload = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}

            cls._instance = cls.model_validate(payload)
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None
