"""Global earthquake catalog retrieval, country attribution and summary statistics."""

__version__ = "0.1.0"
