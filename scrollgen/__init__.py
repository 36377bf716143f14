"""Scrollgen - infinite top-down aerial image scroll generator."""

__version__ = "0.1.0"
