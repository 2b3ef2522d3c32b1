"""AnimaGenius - document-to-video pipeline with subscription-tier admission control."""

__version__ = "0.1.0"
