"""JBS - persistent job scheduler with bounded retry."""

__app_name__ = "jbs"
__version__ = "0.1.0"
