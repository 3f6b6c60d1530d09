"""tasktrack - Change detection and task-file association for a developer task tracker."""

__version__ = "0.1.0"
