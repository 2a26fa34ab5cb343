"""Base class for async HTTP clients."""

import logging
from typing import Optional

import httpx

from ..application.exceptions import ConfigurationError


class BaseClient:
    """A base client that handles an async client and token configuration."""

    def __init__(self, client: httpx.AsyncClient, token: Optional[str] = None):
        """
        Initializes the base client.

        Args:
            client: An instance of httpx.AsyncClient.
            token: An optional authentication token. Without one, requests
                   are anonymous.

        Raises:
            ConfigurationError: If the token appears to be a placeholder.
        """

        if token and "YOUR_" in token.upper():
            raise ConfigurationError(
                f"Authentication token for {self.__class__.__name__} is "
                f"a placeholder. Please check your config files."
            )

        self.client = client
        self.token = token or None
        self.logger = logging.getLogger(self.__class__.__name__)
