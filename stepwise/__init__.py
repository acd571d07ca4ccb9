"""stepwise - plan, run and monitor autonomous tool-driven tasks."""

__version__ = "0.1.0"
