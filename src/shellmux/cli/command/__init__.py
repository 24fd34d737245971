from .attach import attach
from .exec import exec_command
from .init import init

__all__ = ["attach", "exec_command", "init"]
