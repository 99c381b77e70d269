"""DynamoDB table bootstrap for the prompt registry.

Creates the single table used for stored blocks and revisions:
    PK / SK            - NS#{namespace}#SLUG#{slug} / BLOCK | REV#{version:010d}
    GSI1PK / GSI1SK    - BLOCKID#{block_id} / BLOCK | REV#{version:010d}
"""
import logging

from botocore.exceptions import ClientError

from .base import DynamoDBClient

logger = logging.getLogger(__name__)

GSI_BLOCK_ID = "block_id-index"


async def create_prompt_table(client: DynamoDBClient, table_name: str) -> bool:
    """Create the prompt registry table if it doesn't exist.

    Returns:
        True if the table was created, False if it already existed.
    """
    async with client.resource() as dynamodb:
        try:
            logger.info(f"Creating '{table_name}' table...")
            table = await dynamodb.create_table(
                TableName=table_name,
                KeySchema=[
                    {'AttributeName': 'PK', 'KeyType': 'HASH'},
                    {'AttributeName': 'SK', 'KeyType': 'RANGE'},
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'PK', 'AttributeType': 'S'},
                    {'AttributeName': 'SK', 'AttributeType': 'S'},
                    {'AttributeName': 'GSI1PK', 'AttributeType': 'S'},
                    {'AttributeName': 'GSI1SK', 'AttributeType': 'S'},
                ],
                GlobalSecondaryIndexes=[
                    {
                        'IndexName': GSI_BLOCK_ID,
                        'KeySchema': [
                            {'AttributeName': 'GSI1PK', 'KeyType': 'HASH'},
                            {'AttributeName': 'GSI1SK', 'KeyType': 'RANGE'},
                        ],
                        'Projection': {'ProjectionType': 'ALL'},
                    },
                ],
                BillingMode='PAY_PER_REQUEST',
            )
            await table.wait_until_exists()
            logger.info(f"'{table_name}' table created")
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ResourceInUseException':
                logger.info(f"'{table_name}' table already exists")
                return False
            raise
