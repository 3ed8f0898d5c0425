"""Thu Mua Do Cu marketplace backend: exchanges, payments, notifications."""

__version__ = "0.1.0"
