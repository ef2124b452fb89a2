"""
SecondMe Chat - Chat backend for the SecondMe identity and AI platform
======================================================================

FastAPI backend that signs users in with SecondMe OAuth, relays streaming
chat completions to the browser and keeps every conversation in PostgreSQL.

Key Features:
    - **OAuth Login**: Authorization code flow with token refresh and a signed session cookie
    - **Streaming Relay**: Upstream chat bytes forwarded unchanged while the reply is recorded
    - **Chat History**: Sessions and messages persisted per user, partial replies flagged
    - **Structured Judgments**: Schema-constrained "act" calls such as compatibility scoring
    - **Enterprise Logging**: Structured JSON logs with rotation and request correlation

Modules:
    api: FastAPI routes, services, middleware and dependencies
    core: Configuration constants and validated settings
    models: Pydantic models for API requests, responses and errors
    utils: Logging, metrics, database and HTTP client helpers, stream tee
    integrations: SecondMe API client

See Also:
    - DESIGN.md: Design decisions and architecture notes
"""
