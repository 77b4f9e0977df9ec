#!/usr/bin/env python3
"""
Settings for qimage, loaded from .qimage.yaml and the environment.
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from qimage.errors import ConfigurationError

QIMAGE_CONFIG_FILE = ".qimage.yaml"


class QemuImgSettings(BaseModel):
    """Runtime settings for talking to qemu-img."""

    qemu_img: str = Field(default="qemu-img", description="qemu-img executable")
    log_level: str = Field(default="WARNING", description="Log level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    log_file: Optional[Path] = Field(default=None, description="Optional JSON log file")
    profile_paths: List[Path] = Field(
        default_factory=list, description="Extra directories searched for profiles"
    )

    @field_validator("qemu_img")
    @classmethod
    def executable_must_be_set(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("qemu_img cannot be empty")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_valid(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "QemuImgSettings":
        """Load settings from a YAML file (or a directory holding .qimage.yaml).

        A missing file yields defaults. ``QIMAGE_QEMU_IMG`` and
        ``QIMAGE_LOG_LEVEL`` override the file.
        """
        path = Path(path) if path is not None else Path.cwd()
        if path.is_dir():
            path = path / QIMAGE_CONFIG_FILE

        data = {}
        if path.exists():
            try:
                data = yaml.safe_load(path.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid settings YAML {path}: {e}")
            if not isinstance(data, dict):
                raise ConfigurationError(f"Settings file must be a YAML mapping: {path}")

        if os.getenv("QIMAGE_QEMU_IMG"):
            data["qemu_img"] = os.environ["QIMAGE_QEMU_IMG"]
        if os.getenv("QIMAGE_LOG_LEVEL"):
            data["log_level"] = os.environ["QIMAGE_LOG_LEVEL"]

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}")
