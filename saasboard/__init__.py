"""SaaSBoard backend: authentication, mock dashboard metrics, and streaming chat."""

__version__ = "0.1.0"
