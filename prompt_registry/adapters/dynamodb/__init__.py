"""DynamoDB adapters for prompt registry persistence."""
from .base import DynamoDBClient
from .init_tables import GSI_BLOCK_ID, create_prompt_table

__all__ = [
    "DynamoDBClient",
    "GSI_BLOCK_ID",
    "create_prompt_table",
]
