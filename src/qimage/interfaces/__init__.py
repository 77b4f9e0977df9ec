"""Interfaces for qimage collaborators."""

from .process import ProcessResult, ProcessRunner

__all__ = ["ProcessResult", "ProcessRunner"]
