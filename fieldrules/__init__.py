"""fieldrules - declarative field constraints for structured records."""

__version__ = "0.1.0"
