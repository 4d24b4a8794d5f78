"""seesaw-cli — interactive operator console for the Seesaw load-balancing engine."""

__version__ = "0.1.0"
