from . import functions, tasks

__all__ = ["functions", "tasks"]
