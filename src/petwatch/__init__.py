"""Petwatch - command-line client for cloud-connected pet flaps and feeders."""

__version__ = "0.1.0"
