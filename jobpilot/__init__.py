"""Job discovery and résumé tailoring agent."""

__version__ = "0.3.0"
