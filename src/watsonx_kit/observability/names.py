# src/watsonx_kit/observability/names.py

"""Standard metric names for watsonx-kit observability.

Use these constants instead of hardcoded strings for consistency
across the codebase.

Note: All duration metrics are in milliseconds by convention.
Every request metric carries an ``operation`` label
("generate", "generate_stream", "chat", "embed").
"""

# ============================================================================
# Request Metrics
# ============================================================================

# Duration
REQUEST_DURATION = "watsonx_request_duration"

# Counters
REQUESTS_TOTAL = "watsonx_requests_total"
REQUEST_ERRORS_TOTAL = "watsonx_request_errors_total"

# Counters (token usage - monotonic over time for cost/rate tracking)
TOKENS_INPUT = "watsonx_tokens_input"
TOKENS_GENERATED = "watsonx_tokens_generated"


# ============================================================================
# Retry Metrics
# ============================================================================

# Counters (one per scheduled retry, never for the first attempt)
RETRY_ATTEMPTS_TOTAL = "watsonx_retry_attempts_total"


# ============================================================================
# Credential Metrics
# ============================================================================

# Duration
TOKEN_REFRESH_DURATION = "watsonx_token_refresh_duration"

# Counters
TOKEN_REFRESH_TOTAL = "watsonx_token_refresh_total"
TOKEN_REFRESH_ERRORS_TOTAL = "watsonx_token_refresh_errors_total"


# ============================================================================
# Streaming Metrics
# ============================================================================

# Counters
STREAM_RESULTS_TOTAL = "watsonx_stream_results_total"
STREAM_ERRORS_TOTAL = "watsonx_stream_errors_total"


# ============================================================================
# Embeddings Metrics
# ============================================================================

# Gauges
EMBEDDINGS_BATCH_SIZE = "watsonx_embeddings_batch_size"
