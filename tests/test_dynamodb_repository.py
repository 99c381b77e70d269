"""Unit tests for DynamoDBPromptRepository."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from botocore.exceptions import ClientError

from prompt_registry.core.exceptions import PersistenceError, WriteConflictError
from prompt_registry.domain import CustomBlock, OverrideBlock, Revision, RevisionAction
from prompt_registry.repositories.dynamodb_repository import (
    BLOCK_SK,
    BlockItem,
    DynamoDBPromptRepository,
    RevisionItem,
    TABLE_NAME,
    revision_sk,
    slug_pk,
)

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _override():
    return OverrideBlock(
        id="o-1",
        slug="intro",
        name="Intro",
        content="Hi there",
        categories=["greeting"],
        tier=2,
        variants={"slack": "Hi"},
        version=3,
        created_at=NOW,
        updated_at=NOW,
        overrides_slug="intro",
    )


def _revision(version=1):
    return Revision(
        revision_id="r-1",
        block_id="o-1",
        slug="intro",
        actor_id="alice",
        commit_message="Friendlier",
        action=RevisionAction.OVERRIDE,
        before="Hello",
        after="Hi there",
        version=version,
        created_at=NOW,
        variants_snapshot={"slack": "Hi"},
        diff="- Hello\n+ Hi there",
    )


# =============================================================================
# Item Tests
# =============================================================================

class TestItems:
    """Test key helpers and item conversion."""

    def test_revision_sk_sorts_numerically(self):
        assert revision_sk(2) < revision_sk(10)
        assert revision_sk(7) == "REV#0000000007"

    def test_block_item_keys(self):
        item = BlockItem(_override(), "prompts").to_dynamo_item()

        assert item['PK'] == "NS#prompts#SLUG#intro"
        assert item['SK'] == BLOCK_SK
        assert item['GSI1PK'] == "BLOCKID#o-1"
        assert item['entity_type'] == 'BLOCK'
        assert item['source'] == 'override'
        assert item['overrides_slug'] == 'intro'

    def test_block_item_from_dynamo(self):
        item = BlockItem(_override(), "prompts").to_dynamo_item()
        # The resource API hands numbers back as Decimal
        item['tier'] = Decimal(2)
        item['version'] = Decimal(3)

        block = BlockItem.from_dynamo_item(item)

        assert block == _override()
        assert isinstance(block.tier, int)

    def test_custom_block_from_dynamo(self):
        custom = CustomBlock(id="c-1", slug="faq", name="FAQ", content="x", version=1)
        block = BlockItem.from_dynamo_item(BlockItem(custom, "prompts").to_dynamo_item())
        assert isinstance(block, CustomBlock)
        assert block.created_at is None

    def test_revision_item(self):
        item = RevisionItem(_revision(12), "prompts").to_dynamo_item()

        assert item['PK'] == slug_pk("prompts", "intro")
        assert item['SK'] == "REV#0000000012"
        assert item['GSI1SK'] == item['SK']
        assert item['action'] == 'override'
        assert RevisionItem.from_dynamo_item(item) == _revision(12)


# =============================================================================
# Mocks
# =============================================================================

class MockDynamoDBTable:
    """Mock DynamoDB table for testing."""

    def __init__(self):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.queries = []
        self.query_responses: List[Dict[str, Any]] = []

    def _key(self, pk: str, sk: str) -> str:
        return f"{pk}|{sk}"

    def add(self, item: Dict[str, Any]):
        self.items[self._key(item['PK'], item['SK'])] = item

    async def get_item(self, Key: Dict[str, str]):
        item = self.items.get(self._key(Key['PK'], Key['SK']))
        return {'Item': item} if item else {}

    async def query(self, **kwargs):
        self.queries.append(kwargs)
        if self.query_responses:
            return self.query_responses.pop(0)
        return {'Items': []}


class MockDynamoDBResource:
    """Mock DynamoDB resource context manager."""

    def __init__(self, table: MockDynamoDBTable):
        self._table = table

    async def Table(self, name: str):
        return self._table

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class MockDynamoDBLowLevelClient:
    """Mock low-level client context manager recording transactions."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.transactions = []

    async def transact_write_items(self, TransactItems):
        if self.error:
            raise self.error
        self.transactions.append(TransactItems)
        return {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class MockDynamoDBClient:
    """Mock DynamoDBClient for testing."""

    def __init__(self, table: MockDynamoDBTable = None, low_level: MockDynamoDBLowLevelClient = None):
        self._table = table or MockDynamoDBTable()
        self._low_level = low_level or MockDynamoDBLowLevelClient()

    def resource(self):
        return MockDynamoDBResource(self._table)

    def client(self):
        return self._low_level


def _cancelled(*codes):
    return ClientError(
        {
            'Error': {'Code': 'TransactionCanceledException', 'Message': 'Transaction cancelled'},
            'CancellationReasons': [{'Code': code} for code in codes],
        },
        'TransactWriteItems',
    )


# =============================================================================
# Repository Tests
# =============================================================================

class TestDynamoDBPromptRepository:
    """Test DynamoDBPromptRepository methods."""

    @pytest.fixture
    def mock_table(self):
        return MockDynamoDBTable()

    @pytest.fixture
    def low_level(self):
        return MockDynamoDBLowLevelClient()

    @pytest.fixture
    def repository(self, mock_table, low_level):
        return DynamoDBPromptRepository(MockDynamoDBClient(mock_table, low_level))

    @pytest.mark.asyncio
    async def test_get_by_slug(self, repository, mock_table):
        mock_table.add(BlockItem(_override(), "prompts").to_dynamo_item())

        assert await repository.get_by_slug("intro") == _override()
        assert await repository.get_by_slug("missing") is None

    @pytest.mark.asyncio
    async def test_namespace_isolates_slugs(self, mock_table):
        mock_table.add(BlockItem(_override(), "prompts").to_dynamo_item())
        other = DynamoDBPromptRepository(MockDynamoDBClient(mock_table), namespace="staging")

        assert await other.get_by_slug("intro") is None

    @pytest.mark.asyncio
    async def test_get_by_id_queries_index(self, repository, mock_table):
        mock_table.query_responses.append(
            {'Items': [BlockItem(_override(), "prompts").to_dynamo_item()]}
        )

        block = await repository.get_by_id("o-1")

        assert block.id == "o-1"
        assert mock_table.queries[0]['IndexName'] == "block_id-index"

    @pytest.mark.asyncio
    async def test_get_revision(self, repository, mock_table):
        mock_table.add(RevisionItem(_revision(2), "prompts").to_dynamo_item())

        assert (await repository.get_revision("intro", 2)).version == 2
        assert await repository.get_revision("intro", 3) is None

    @pytest.mark.asyncio
    async def test_revisions_page_across_responses(self, repository, mock_table):
        items = [RevisionItem(_revision(v), "prompts").to_dynamo_item() for v in (5, 4, 3)]
        mock_table.query_responses.extend([
            {'Items': items[:2], 'LastEvaluatedKey': {'PK': 'x', 'SK': 'y'}},
            {'Items': items[2:]},
        ])

        revisions = await repository.list_revisions_for_slug("intro", offset=1, limit=2)

        assert [r.version for r in revisions] == [4, 3]
        assert mock_table.queries[0]['ScanIndexForward'] is False
        assert mock_table.queries[1]['ExclusiveStartKey'] == {'PK': 'x', 'SK': 'y'}

    @pytest.mark.asyncio
    async def test_commit_single_transaction(self, repository, low_level):
        async with repository.transaction() as tx:
            tx.put_block(_override(), create=True)
            tx.append_revision(_revision())

        assert len(low_level.transactions) == 1
        put_block, put_revision = low_level.transactions[0]
        assert put_block['Put']['TableName'] == TABLE_NAME
        assert put_block['Put']['ConditionExpression'] == 'attribute_not_exists(PK)'
        assert put_block['Put']['Item']['SK'] == {'S': 'BLOCK'}
        assert put_revision['Put']['Item']['SK'] == {'S': 'REV#0000000001'}
        assert put_revision['Put']['ConditionExpression'] == 'attribute_not_exists(PK)'

    @pytest.mark.asyncio
    async def test_update_and_delete_conditions(self, repository, low_level):
        async with repository.transaction() as tx:
            tx.put_block(_override())
            tx.delete_block(_override())

        update, delete = low_level.transactions[0]
        assert 'block_id = :bid' in update['Put']['ConditionExpression']
        assert update['Put']['ExpressionAttributeValues'] == {':bid': {'S': 'o-1'}}
        assert delete['Delete']['Key'] == {
            'PK': {'S': 'NS#prompts#SLUG#intro'},
            'SK': {'S': 'BLOCK'},
        }

    @pytest.mark.asyncio
    async def test_condition_failure_is_conflict(self, mock_table):
        low_level = MockDynamoDBLowLevelClient(error=_cancelled('None', 'ConditionalCheckFailed'))
        repository = DynamoDBPromptRepository(MockDynamoDBClient(mock_table, low_level))

        with pytest.raises(WriteConflictError):
            async with repository.transaction() as tx:
                tx.put_block(_override(), create=True)
                tx.append_revision(_revision())

    @pytest.mark.asyncio
    async def test_other_failure_is_persistence_error(self, mock_table):
        error = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
            'TransactWriteItems',
        )
        low_level = MockDynamoDBLowLevelClient(error=error)
        repository = DynamoDBPromptRepository(MockDynamoDBClient(mock_table, low_level))

        with pytest.raises(PersistenceError) as exc_info:
            async with repository.transaction() as tx:
                tx.append_revision(_revision())

        assert not isinstance(exc_info.value, WriteConflictError)
        assert exc_info.value.original_error is error

    @pytest.mark.asyncio
    async def test_empty_transaction_skips_write(self, repository, low_level):
        async with repository.transaction():
            pass
        assert low_level.transactions == []
