"""DynamoDB prompt repository.

Table Design (Single-Table):
    PK patterns:
    - NS#{namespace}#SLUG#{slug} - everything stored under one slug

    SK patterns:
    - BLOCK - the stored override or custom block
    - REV#{version:010d} - one revision of the slug

    GSI (block_id-index):
    - GSI1PK = BLOCKID#{block_id}
    - GSI1SK = BLOCK | REV#{version:010d}

Revision versions are unique per slug, so a revision put is conditional on
its key being free. Two writers that read the same latest version collide
there and the losing transaction is cancelled.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ..adapters.dynamodb import GSI_BLOCK_ID, DynamoDBClient
from ..core.exceptions import PersistenceError, WriteConflictError
from ..domain import (
    CustomBlock,
    OverrideBlock,
    Revision,
    RevisionAction,
    StoredBlock,
)
from ..interfaces.prompt_repository import (
    AppendRevision,
    DeleteBlock,
    IPromptRepository,
    PromptTransaction,
    PutBlock,
)

logger = logging.getLogger(__name__)

TABLE_NAME = "prompt_registry"

BLOCK_SK = "BLOCK"
REVISION_SK_PREFIX = "REV#"

# DynamoDB limits
MAX_TRANSACTION_ITEMS = 100
MAX_BATCH_GET_KEYS = 100
MAX_UNPROCESSED_ROUNDS = 5


def slug_pk(namespace: str, slug: str) -> str:
    return f"NS#{namespace}#SLUG#{slug}"


def block_id_key(block_id: str) -> str:
    return f"BLOCKID#{block_id}"


def revision_sk(version: int) -> str:
    return f"{REVISION_SK_PREFIX}{version:010d}"


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class BlockItem:
    """Stored block row."""
    block: StoredBlock
    namespace: str

    @property
    def pk(self) -> str:
        return slug_pk(self.namespace, self.block.slug)

    @property
    def sk(self) -> str:
        return BLOCK_SK

    def to_dynamo_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        block = self.block
        item = {
            'PK': self.pk,
            'SK': self.sk,
            'GSI1PK': block_id_key(block.id),
            'GSI1SK': BLOCK_SK,
            'entity_type': 'BLOCK',
            'block_id': block.id,
            'slug': block.slug,
            'namespace': self.namespace,
            'source': block.source.value,
            'name': block.name,
            'description': block.description,
            'content': block.content,
            'categories': list(block.categories),
            'tier': block.tier,
            'variants': dict(block.variants),
            'version': block.version,
            'created_at': block.created_at.isoformat() if block.created_at else None,
            'updated_at': block.updated_at.isoformat() if block.updated_at else None,
        }
        if isinstance(block, OverrideBlock):
            item['overrides_slug'] = block.overrides_slug
        return item

    @classmethod
    def from_dynamo_item(cls, item: Dict[str, Any]) -> StoredBlock:
        """Create the domain block from a DynamoDB item."""
        fields = dict(
            id=item['block_id'],
            slug=item['slug'],
            name=item.get('name', item['slug']),
            description=item.get('description', ''),
            content=item.get('content', ''),
            categories=list(item.get('categories', [])),
            # Numbers come back as Decimal
            tier=int(item.get('tier', 3)),
            variants=dict(item.get('variants', {})),
            namespace=item.get('namespace', 'prompts'),
            version=int(item.get('version', 0)),
            created_at=_parse_ts(item.get('created_at')),
            updated_at=_parse_ts(item.get('updated_at')),
        )
        if item.get('source') == 'override':
            return OverrideBlock(overrides_slug=item.get('overrides_slug', item['slug']), **fields)
        return CustomBlock(**fields)


@dataclass
class RevisionItem:
    """Revision row, stored next to the block under the slug partition."""
    revision: Revision
    namespace: str

    @property
    def pk(self) -> str:
        return slug_pk(self.namespace, self.revision.slug)

    @property
    def sk(self) -> str:
        return revision_sk(self.revision.version)

    def to_dynamo_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        revision = self.revision
        return {
            'PK': self.pk,
            'SK': self.sk,
            'GSI1PK': block_id_key(revision.block_id),
            'GSI1SK': self.sk,
            'entity_type': 'REVISION',
            'revision_id': revision.revision_id,
            'block_id': revision.block_id,
            'slug': revision.slug,
            'actor_id': revision.actor_id,
            'commit_message': revision.commit_message,
            'action': revision.action.value,
            'before': revision.before,
            'after': revision.after,
            'version': revision.version,
            'created_at': revision.created_at.isoformat(),
            'variants_snapshot': dict(revision.variants_snapshot),
            'diff': revision.diff,
        }

    @classmethod
    def from_dynamo_item(cls, item: Dict[str, Any]) -> Revision:
        """Create the domain revision from a DynamoDB item."""
        return Revision(
            revision_id=item['revision_id'],
            block_id=item['block_id'],
            slug=item['slug'],
            actor_id=item.get('actor_id', 'unknown'),
            commit_message=item.get('commit_message', ''),
            action=RevisionAction(item['action']),
            before=item.get('before', ''),
            after=item.get('after', ''),
            version=int(item['version']),
            created_at=datetime.fromisoformat(item['created_at']),
            variants_snapshot=dict(item.get('variants_snapshot') or {}),
            diff=item.get('diff'),
        )


class DynamoDBPromptRepository(IPromptRepository):
    """
    Prompt repository backed by a single DynamoDB table.

    Reads go through the resource API; transactions go through the low-level
    client so every staged operation lands in one TransactWriteItems call.

    Example:
        client = DynamoDBClient(endpoint_url="http://localhost:8000")
        repository = DynamoDBPromptRepository(client, namespace="prompts")

        async with repository.transaction() as tx:
            tx.put_block(block, create=True)
            tx.append_revision(revision)
    """

    def __init__(
        self,
        client: DynamoDBClient,
        table_name: str = TABLE_NAME,
        namespace: str = "prompts",
    ):
        """
        Initialize the repository.

        Args:
            client: DynamoDBClient instance.
            table_name: Table created by create_prompt_table().
            namespace: Partition prefix separating block namespaces.
        """
        self._client = client
        self._table_name = table_name
        self._namespace = namespace
        self._serializer = TypeSerializer()

    @asynccontextmanager
    async def _table(self):
        """Yield the table resource, wrapping datastore failures."""
        try:
            async with self._client.resource() as dynamodb:
                yield await dynamodb.Table(self._table_name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB read failed on {self._table_name}: {e}")
            raise PersistenceError(f"DynamoDB read failed: {e}", original_error=e) from e

    # ========== Block Reads ==========

    async def get_by_slug(self, slug: str) -> Optional[StoredBlock]:
        async with self._table() as table:
            response = await table.get_item(
                Key={'PK': slug_pk(self._namespace, slug), 'SK': BLOCK_SK}
            )
            item = response.get('Item')
            return BlockItem.from_dynamo_item(item) if item else None

    async def get_by_id(self, block_id: str) -> Optional[StoredBlock]:
        async with self._table() as table:
            response = await table.query(
                IndexName=GSI_BLOCK_ID,
                KeyConditionExpression=Key('GSI1PK').eq(block_id_key(block_id)) &
                                       Key('GSI1SK').eq(BLOCK_SK),
                Limit=1,
            )
            items = response.get('Items', [])
            if items:
                return BlockItem.from_dynamo_item(items[0])
            return None

    async def get_many_by_slug(self, slugs: Iterable[str]) -> Dict[str, StoredBlock]:
        unique = list(dict.fromkeys(slugs))
        found: Dict[str, StoredBlock] = {}
        if not unique:
            return found

        try:
            async with self._client.resource() as dynamodb:
                for start in range(0, len(unique), MAX_BATCH_GET_KEYS):
                    chunk = unique[start:start + MAX_BATCH_GET_KEYS]
                    request = {
                        self._table_name: {
                            'Keys': [
                                {'PK': slug_pk(self._namespace, slug), 'SK': BLOCK_SK}
                                for slug in chunk
                            ]
                        }
                    }

                    for _ in range(MAX_UNPROCESSED_ROUNDS):
                        response = await dynamodb.batch_get_item(RequestItems=request)
                        for item in response.get('Responses', {}).get(self._table_name, []):
                            block = BlockItem.from_dynamo_item(item)
                            found[block.slug] = block
                        request = response.get('UnprocessedKeys') or {}
                        if not request:
                            break
                    else:
                        raise PersistenceError(
                            f"DynamoDB left {len(request[self._table_name]['Keys'])} "
                            f"keys unprocessed"
                        )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB batch read failed: {e}")
            raise PersistenceError(f"DynamoDB read failed: {e}", original_error=e) from e

        return found

    async def list_blocks(self) -> List[StoredBlock]:
        blocks = []
        async with self._table() as table:
            scan_kwargs = {
                'FilterExpression': Attr('entity_type').eq('BLOCK') &
                                    Attr('namespace').eq(self._namespace),
            }
            while True:
                response = await table.scan(**scan_kwargs)
                blocks.extend(BlockItem.from_dynamo_item(item) for item in response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                scan_kwargs['ExclusiveStartKey'] = last_key
        return blocks

    # ========== Revision Reads ==========

    async def _query_revisions(self, query_kwargs: Dict[str, Any], offset: int, limit: int) -> List[Revision]:
        wanted = offset + limit
        items: List[Dict[str, Any]] = []

        async with self._table() as table:
            while len(items) < wanted:
                response = await table.query(
                    ScanIndexForward=False,  # Newest first
                    Limit=wanted - len(items),
                    **query_kwargs,
                )
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                query_kwargs = {**query_kwargs, 'ExclusiveStartKey': last_key}

        return [RevisionItem.from_dynamo_item(item) for item in items[offset:wanted]]

    async def list_revisions_for_block(
        self,
        block_id: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        return await self._query_revisions(
            {
                'IndexName': GSI_BLOCK_ID,
                'KeyConditionExpression': Key('GSI1PK').eq(block_id_key(block_id)) &
                                          Key('GSI1SK').begins_with(REVISION_SK_PREFIX),
            },
            offset,
            limit,
        )

    async def list_revisions_for_slug(
        self,
        slug: str,
        offset: int = 0,
        limit: int = 50,
    ) -> List[Revision]:
        return await self._query_revisions(
            {
                'KeyConditionExpression': Key('PK').eq(slug_pk(self._namespace, slug)) &
                                          Key('SK').begins_with(REVISION_SK_PREFIX),
            },
            offset,
            limit,
        )

    async def get_revision(self, slug: str, version: int) -> Optional[Revision]:
        async with self._table() as table:
            response = await table.get_item(
                Key={'PK': slug_pk(self._namespace, slug), 'SK': revision_sk(version)}
            )
            item = response.get('Item')
            return RevisionItem.from_dynamo_item(item) if item else None

    # ========== Writes ==========

    def _serialize(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return {key: self._serializer.serialize(value) for key, value in item.items()}

    def _transact_item(self, op) -> Dict[str, Any]:
        """Translate one staged operation into a TransactWriteItems entry."""
        if isinstance(op, PutBlock):
            put: Dict[str, Any] = {
                'TableName': self._table_name,
                'Item': self._serialize(BlockItem(op.block, self._namespace).to_dynamo_item()),
            }
            if op.create:
                put['ConditionExpression'] = 'attribute_not_exists(PK)'
            else:
                # Slug must be free or already owned by this block
                put['ConditionExpression'] = 'attribute_not_exists(PK) OR block_id = :bid'
                put['ExpressionAttributeValues'] = {':bid': {'S': op.block.id}}
            return {'Put': put}

        if isinstance(op, DeleteBlock):
            return {
                'Delete': {
                    'TableName': self._table_name,
                    'Key': self._serialize({
                        'PK': slug_pk(self._namespace, op.block.slug),
                        'SK': BLOCK_SK,
                    }),
                    'ConditionExpression': 'attribute_exists(PK) AND block_id = :bid',
                    'ExpressionAttributeValues': {':bid': {'S': op.block.id}},
                }
            }

        if isinstance(op, AppendRevision):
            return {
                'Put': {
                    'TableName': self._table_name,
                    'Item': self._serialize(RevisionItem(op.revision, self._namespace).to_dynamo_item()),
                    'ConditionExpression': 'attribute_not_exists(PK)',
                }
            }

        raise TypeError(f"Unknown operation: {op!r}")

    async def _commit(self, tx: PromptTransaction) -> None:
        if len(tx.operations) > MAX_TRANSACTION_ITEMS:
            raise PersistenceError(
                f"Transaction has {len(tx.operations)} operations; "
                f"DynamoDB allows {MAX_TRANSACTION_ITEMS}"
            )

        transact_items = [self._transact_item(op) for op in tx.operations]

        try:
            async with self._client.client() as dynamo:
                await dynamo.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code == 'TransactionCanceledException':
                reasons = [r.get('Code') for r in e.response.get('CancellationReasons', [])]
                if 'ConditionalCheckFailed' in reasons:
                    logger.warning(f"Transaction lost a conditional check: {reasons}")
                    raise WriteConflictError(
                        "Concurrent modification detected; re-read and retry",
                        original_error=e,
                    ) from e
            logger.error(f"DynamoDB transaction failed: {e}")
            raise PersistenceError(f"DynamoDB write failed: {e}", original_error=e) from e
        except BotoCoreError as e:
            logger.error(f"DynamoDB transaction failed: {e}")
            raise PersistenceError(f"DynamoDB write failed: {e}", original_error=e) from e

        logger.debug(f"Committed {len(transact_items)} operations to {self._table_name}")
