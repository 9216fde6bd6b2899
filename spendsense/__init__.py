"""SpendSense: learns expense categories from transaction titles."""

__version__ = "0.1.0"
