from __future__ import annotations

from typing import Any

from dailypli.auth.youtube import YouTubeOAuthProvider
from dailypli.logger import get_logger
from dailypli.providers.youtube.api_manager import YouTubeGateway


def get_youtube_client(env: Any) -> Any:
    """
    Authorized YouTube Data API client for ``env``.

    Delegates OAuth + token lifecycle to the auth provider; raises AuthError.
    """
    logger = get_logger(__name__)

    youtube = YouTubeOAuthProvider(env).build_client()
    logger.debug("Successfully built YouTube API client")
    return youtube


def build_gateway(env: Any) -> YouTubeGateway:
    return YouTubeGateway.from_env(get_youtube_client(env), env)


__all__ = ["get_youtube_client", "build_gateway"]
