"""AppGraph: semantic dependency graphs for web-application codebases."""

__version__ = "0.3.0"
