# fireworks_inference/inference/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Inference contract - Public API

Provider-neutral types, errors, listeners, settings helpers, chunking,
truncation and the HTTP sender. Re-exported here for clean imports.
"""

from fireworks_inference.inference.inference_base import (
    # Task & input types
    TaskType,
    InputType,

    # Error types
    InferenceAdapterError,
    BadRequest,
    ValidationError,
    NotSupported,
    InvalidModel,
    TransportError,
    DeadlineExceeded,
    ParseError,
    ProviderError,
    AuthError,
    ContentTooLarge,
    ResourceExhausted,
    Unavailable,

    # Inputs
    EmbeddingsInput,
    QueryAndDocsInputs,
    ChunkInferenceInput,
    UnifiedChatInput,

    # Results
    EmbeddingVector,
    TextEmbeddingFloatResults,
    RankedDoc,
    RankedDocsResults,
    EmbeddingChunk,
    ChunkedInferenceEmbedding,

    # Listeners
    ActionListener,
    CallbackListener,
    NotifyOnceListener,
    ListenerFuture,
    ExecutableAction,

    # Metrics and rate limiting
    MetricsSink,
    NoopMetrics,
    RateLimiter,
    NoopLimiter,
    TokenBucketLimiter,
)
from fireworks_inference.inference.settings import (
    ConfigurationParseContext,
    SimilarityMeasure,
    RateLimitSettings,
    DefaultSecretSettings,
    InferenceServiceConfiguration,
    SettingsConfiguration,
    SettingsConfigurationFieldType,
)
from fireworks_inference.inference.chunking import (
    ChunkingStrategy,
    ChunkingSettings,
    BatchRequestAndListener,
    EmbeddingRequestChunker,
)
from fireworks_inference.inference.truncation import (
    TruncationResult,
    TruncatorSettings,
    Truncator,
)
from fireworks_inference.inference.sender import (
    HttpRequest,
    HttpResult,
    HttpSenderSettings,
    HttpRequestSender,
    GenericRequestManager,
    TruncatingRequestManager,
    SenderExecutableAction,
    ServiceComponents,
)

__all__ = [
    "TaskType",
    "InputType",
    "InferenceAdapterError",
    "BadRequest",
    "ValidationError",
    "NotSupported",
    "InvalidModel",
    "TransportError",
    "DeadlineExceeded",
    "ParseError",
    "ProviderError",
    "AuthError",
    "ContentTooLarge",
    "ResourceExhausted",
    "Unavailable",
    "EmbeddingsInput",
    "QueryAndDocsInputs",
    "ChunkInferenceInput",
    "UnifiedChatInput",
    "EmbeddingVector",
    "TextEmbeddingFloatResults",
    "RankedDoc",
    "RankedDocsResults",
    "EmbeddingChunk",
    "ChunkedInferenceEmbedding",
    "ActionListener",
    "CallbackListener",
    "NotifyOnceListener",
    "ListenerFuture",
    "ExecutableAction",
    "MetricsSink",
    "NoopMetrics",
    "RateLimiter",
    "NoopLimiter",
    "TokenBucketLimiter",
    "ConfigurationParseContext",
    "SimilarityMeasure",
    "RateLimitSettings",
    "DefaultSecretSettings",
    "InferenceServiceConfiguration",
    "SettingsConfiguration",
    "SettingsConfigurationFieldType",
    "ChunkingStrategy",
    "ChunkingSettings",
    "BatchRequestAndListener",
    "EmbeddingRequestChunker",
    "TruncationResult",
    "TruncatorSettings",
    "Truncator",
    "HttpRequest",
    "HttpResult",
    "HttpSenderSettings",
    "HttpRequestSender",
    "GenericRequestManager",
    "TruncatingRequestManager",
    "SenderExecutableAction",
    "ServiceComponents",
]
