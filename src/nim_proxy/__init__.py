"""OpenAI-compatible gateway in front of NVIDIA NIM style inference APIs."""

__version__ = "0.1.0"
