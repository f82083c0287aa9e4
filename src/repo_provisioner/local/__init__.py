"""Local filesystem and process helpers."""

from .filesystem import recreate_directory
from .process import ProcessEnvironment, run_child_process

__all__ = ["ProcessEnvironment", "recreate_directory", "run_child_process"]
