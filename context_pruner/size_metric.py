"""Size metrics: pluggable cost estimates for history content."""

from __future__ import annotations

from typing import Callable, Union

Content = Union[str, bytes, None]
SizeMetric = Callable[[Content], int]

SIZE_METRIC_MODES = ("estimate", "bytes", "tiktoken")


def _as_text(content: Content) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def estimate_tokens(content: Content) -> int:
    """Rough estimate: ~4 chars per token. Empty content costs nothing."""
    if not content:
        return 0
    return max(1, len(content) // 4)


def byte_length(content: Content) -> int:
    """UTF-8 byte length."""
    if not content:
        return 0
    if isinstance(content, bytes):
        return len(content)
    return len(content.encode("utf-8"))


def create_size_metric(mode: str = "estimate") -> SizeMetric:
    """Factory for size metrics.

    Modes:
        "estimate" - len(text) // 4 (zero deps)
        "bytes" - UTF-8 byte length
        "tiktoken" - requires tiktoken package
        "callable:module.path:func" - custom callable taking the content
    """
    if mode == "estimate":
        return estimate_tokens

    if mode == "bytes":
        return byte_length

    if mode == "tiktoken":
        try:
            import tiktoken
        except ImportError:
            raise ImportError(
                "tiktoken not installed. Install with: pip install context-pruner[tiktoken]"
            )
        enc = tiktoken.get_encoding("cl100k_base")

        def _tiktoken_cost(content: Content) -> int:
            text = _as_text(content)
            return len(enc.encode(text)) if text else 0

        return _tiktoken_cost

    if mode.startswith("callable:"):
        # Format: callable:module.path:func_name
        parts = mode[len("callable:"):].rsplit(":", 1)
        if len(parts) != 2:
            raise ValueError(f"Invalid callable spec: {mode}. Expected callable:module:func")
        module_path, func_name = parts
        import importlib
        mod = importlib.import_module(module_path)
        return getattr(mod, func_name)

    raise ValueError(f"Unknown size metric mode: {mode}")
