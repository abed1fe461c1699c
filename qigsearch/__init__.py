"""QIG search: heuristic passphrase candidate evaluation daemon."""

__version__ = "0.1.0"
