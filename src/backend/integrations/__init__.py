"""
Integrations Module - External System Integrations
===================================================

Provides the client for the SecondMe identity and AI provider.

Modules:
    secondme_client: OAuth token exchange/refresh, user profile and shades,
        streaming chat and structured (act) chat calls

Example:
    Relaying a chat stream:

        client = SecondMeClient(http_client, settings)
        response = await client.open_chat_stream(user.access_token, "hello", session_id)
        try:
            async for chunk in response.aiter_bytes():
                ...
        finally:
            await response.aclose()

See Also:
    :mod:`api.services.chat_service`: Chat relay built on the streaming call
    :mod:`api.services.auth_service`: Login flow and token refresh
"""
