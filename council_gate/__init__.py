"""Council deliberation and epistemic validation gate."""

__version__ = "0.1.0"
