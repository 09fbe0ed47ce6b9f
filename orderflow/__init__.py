"""Order lifecycle and kitchen task orchestration for hospitality food ordering."""

__version__ = "0.1.0"
