"""Serve objects of an S3 bucket as HTTP resources."""

__version__ = "0.1.0"
