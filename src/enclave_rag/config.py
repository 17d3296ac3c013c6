"""Configuration models for the SMS answer pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field


class FusionConfig(BaseModel):
    """Configures hybrid signal fan-out and reciprocal rank fusion."""

    rrf_k: int = Field(default=60, ge=1)
    signal_limit: int = Field(default=10, ge=1)
    chunk_limit_multiplier: int = Field(default=3, ge=1)


class RetrieverConfig(BaseModel):
    """Configures the multi-layer retriever and its layers."""

    layer_timeout_seconds: float = Field(default=4.0, gt=0.0)
    content_limit: int = Field(default=5, ge=1)
    convo_limit: int = Field(default=5, ge=1)
    action_score: float = Field(default=0.8, ge=0.0, le=1.0)
    content_snippet_chars: int = Field(default=800, ge=1)
    reference_snippet_chars: int = Field(default=1200, ge=1)


class ContextConfig(BaseModel):
    """Configures context window assembly for the language model."""

    max_chars: int = Field(default=6000, ge=1)
    snippet_chars: int = Field(default=700, ge=1)
    truncate_oversized_first_block: bool = False


class ToneConfig(BaseModel):
    """Weights and thresholds for tone escalation."""

    toxicity_weight: float = Field(default=0.5, ge=0.0)
    smalltalk_weight: float = Field(default=0.3, ge=0.0)
    context_edge_weight: float = Field(default=0.2, ge=0.0)
    spicy_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    sass_threshold: float = Field(default=0.35, ge=0.0, le=1.0)


class SmsConfig(BaseModel):
    """Carrier limits for outgoing messages."""

    max_length: int = Field(default=1600, ge=1)
    tighten_max: int = Field(default=300, ge=1)


class AgentConfig(BaseModel):
    """Configures turn handling and latency targets."""

    target_latency_seconds: float = Field(default=8.0, gt=0.0)
    default_scope: str = "00000000-0000-0000-0000-000000000000"
    use_tone_prefix: bool = True
