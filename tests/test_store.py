import boto3
import pytest
from botocore.stub import Stubber

from pulsechain.store import DocumentNotFound, DynamoStore, MemoryStore, StoreError

TABLES = {'donors': 'Donors', 'allRequests': 'AllRequests'}


@pytest.fixture
def dynamo():
    resource = boto3.resource(
        'dynamodb',
        region_name='us-east-1',
        aws_access_key_id='testing',
        aws_secret_access_key='testing'
    )
    store = DynamoStore(TABLES, resource=resource)
    with Stubber(resource.meta.client) as stubber:
        yield store, stubber
        stubber.assert_no_pending_responses()


def test_memory_store_crud():
    store = MemoryStore()
    doc_id = store.add('donors', {'fullName': 'Priya Patel', 'bloodGroup': 'A+'})
    assert store.get('donors', doc_id) == {'id': doc_id, 'fullName': 'Priya Patel', 'bloodGroup': 'A+'}

    store.update('donors', doc_id, {'bloodGroup': 'A-'})
    assert store.query('donors', bloodGroup='A-')[0]['id'] == doc_id
    assert store.query('donors', bloodGroup='A+') == []

    store.delete('donors', doc_id)
    assert store.get('donors', doc_id) is None
    assert store.scan('donors') == []


def test_memory_store_returns_copies():
    store = MemoryStore()
    doc_id = store.add('donors', {'fullName': 'Amit Kumar'})
    store.get('donors', doc_id)['fullName'] = 'Changed'
    assert store.get('donors', doc_id)['fullName'] == 'Amit Kumar'


def test_memory_store_update_missing():
    with pytest.raises(DocumentNotFound):
        MemoryStore().update('donors', 'missing', {'availability': 'No'})


def test_memory_store_persists_to_json(tmp_path):
    store = MemoryStore(str(tmp_path))
    doc_id = store.add('allRequests', {'requestBlood': 'O-', 'status': 'pending'})
    assert (tmp_path / 'allRequests.json').exists()

    reloaded = MemoryStore(str(tmp_path))
    assert reloaded.get('allRequests', doc_id)['requestBlood'] == 'O-'


def test_memory_store_corrupt_file(tmp_path):
    (tmp_path / 'donors.json').write_text('{not json', encoding='utf-8')
    with pytest.raises(StoreError):
        MemoryStore(str(tmp_path)).scan('donors')


def test_dynamo_scan_follows_pages_and_converts_numbers(dynamo):
    store, stubber = dynamo
    stubber.add_response('scan', {
        'Items': [{'id': {'S': 'a'}, 'age': {'N': '28'}}],
        'LastEvaluatedKey': {'id': {'S': 'a'}}
    }, {'TableName': 'Donors'})
    stubber.add_response('scan', {
        'Items': [{'id': {'S': 'b'}, 'age': {'N': '31.5'}}]
    }, {'TableName': 'Donors', 'ExclusiveStartKey': {'id': 'a'}})

    assert store.scan('donors') == [{'id': 'a', 'age': 28}, {'id': 'b', 'age': 31.5}]


def test_dynamo_get_missing_item(dynamo):
    store, stubber = dynamo
    stubber.add_response('get_item', {}, {'TableName': 'Donors', 'Key': {'id': 'x'}})
    assert store.get('donors', 'x') is None


def test_dynamo_add_returns_generated_id(dynamo):
    store, stubber = dynamo
    stubber.add_response('put_item', {}, None)
    doc_id = store.add('donors', {'fullName': 'Sneha Gupta', 'age': 30})
    assert len(doc_id) == 32


def test_dynamo_update_missing_document(dynamo):
    store, stubber = dynamo
    stubber.add_client_error('update_item', service_error_code='ConditionalCheckFailedException')
    with pytest.raises(DocumentNotFound):
        store.update('allRequests', 'missing', {'status': 'completed'})


def test_dynamo_errors_become_store_errors(dynamo):
    store, stubber = dynamo
    stubber.add_client_error('scan', service_error_code='ResourceNotFoundException')
    with pytest.raises(StoreError):
        store.scan('donors')


def test_dynamo_unknown_collection(dynamo):
    store, _ = dynamo
    with pytest.raises(StoreError):
        store.scan('requests')
