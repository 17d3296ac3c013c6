"""SMS question answering: hybrid retrieval, rank fusion, deterministic answers."""

from .config import AgentConfig, ContextConfig, FusionConfig, RetrieverConfig, SmsConfig, ToneConfig

__all__ = [
    "AgentConfig",
    "ContextConfig",
    "FusionConfig",
    "RetrieverConfig",
    "SmsConfig",
    "ToneConfig",
]
