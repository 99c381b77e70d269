"""Base DynamoDB client configuration for the prompt registry.

Provides shared client setup for the DynamoDB repository and table bootstrap.
Uses aioboto3 for async operations.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config

logger = logging.getLogger(__name__)


class DynamoDBClient:
    """
    Shared DynamoDB client configuration.

    Provides async context managers for DynamoDB resource and client.

    Example:
        client = DynamoDBClient(endpoint_url="http://localhost:8000")

        async with client.resource() as dynamodb:
            table = await dynamodb.Table('prompt_registry')
            await table.get_item(Key={...})

        async with client.client() as dynamo:
            await dynamo.transact_write_items(TransactItems=[...])
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        region_name: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        connect_timeout: int = 5,
        read_timeout: int = 30,
    ):
        """
        Initialize DynamoDB client configuration.

        Args:
            endpoint_url: DynamoDB endpoint (None for AWS default).
            region_name: AWS region.
            access_key: AWS access key (None to use the default chain).
            secret_key: AWS secret key (None to use the default chain).
            connect_timeout: Connect timeout in seconds.
            read_timeout: Read timeout in seconds.
        """
        self._endpoint_url = endpoint_url
        self._region_name = region_name
        self._access_key = access_key
        self._secret_key = secret_key
        self._session = aioboto3.Session()

        # No retries here; callers decide whether a failed write is safe to repeat
        self._config = Config(
            retries={
                'max_attempts': 1,
                'mode': 'standard'
            },
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )

        logger.debug(f"DynamoDB client configured for {self._endpoint_url or 'AWS default'}")

    @property
    def _resource_config(self) -> Dict[str, Any]:
        """Get configuration dict for resource/client creation."""
        config: Dict[str, Any] = {
            'region_name': self._region_name,
            'config': self._config,
        }
        if self._endpoint_url:
            config['endpoint_url'] = self._endpoint_url
        if self._access_key and self._secret_key:
            config['aws_access_key_id'] = self._access_key
            config['aws_secret_access_key'] = self._secret_key
        return config

    @asynccontextmanager
    async def resource(self):
        """Get async DynamoDB resource context manager."""
        async with self._session.resource('dynamodb', **self._resource_config) as dynamodb:
            yield dynamodb

    @asynccontextmanager
    async def client(self):
        """Get async DynamoDB client context manager (low-level API)."""
        async with self._session.client('dynamodb', **self._resource_config) as dynamo:
            yield dynamo

    async def health_check(self) -> bool:
        """
        Check if DynamoDB is accessible.

        Returns:
            True if healthy, False otherwise.
        """
        try:
            async with self.client() as dynamo:
                await dynamo.list_tables(Limit=1)
            return True
        except Exception as e:
            logger.warning(f"DynamoDB health check failed: {e}")
            return False

    def __repr__(self) -> str:
        return f"DynamoDBClient(endpoint={self._endpoint_url}, region={self._region_name})"
