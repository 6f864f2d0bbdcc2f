"""Automated accessibility fixes via a generative-AI CLI, packaged as pull requests."""

__version__ = "0.1.0"

__all__ = ["__version__"]
