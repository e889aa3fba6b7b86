"""Gateway exposing an OpenAI-compatible interface atop an upstream inference API.

Chat completions are normalized (credential, defaults, message cleaning) and
forwarded verbatim; model listing is relayed as-is.
"""

__all__ = []
