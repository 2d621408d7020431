"""
store.py
Document storage for the portal.

DynamoStore keeps one DynamoDB table per collection (partition key `id`).
MemoryStore holds the same documents in process memory for local development
and tests, and can persist each collection to a JSON file under a data
directory.
"""
import copy
import json
import logging
import os
import uuid
from decimal import Decimal

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The document database failed or rejected an operation"""


class DocumentNotFound(StoreError):
    pass


def generate_id():
    return uuid.uuid4().hex


def get_store():
    """Store configured for the running app"""
    return current_app.extensions['pulsechain.store']


# DynamoDB does not accept Python floats; convert floats to Decimal
def _convert_floats_to_decimal(obj):
    if isinstance(obj, dict):
        return {k: _convert_floats_to_decimal(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_floats_to_decimal(v) for v in obj]
    if isinstance(obj, float):
        return Decimal(str(obj))
    return obj


def _convert_decimals(obj):
    if isinstance(obj, dict):
        return {k: _convert_decimals(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_decimals(v) for v in obj]
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    return obj


class DynamoStore:
    def __init__(self, table_names, region='us-east-1', resource=None):
        self.resource = resource or boto3.resource('dynamodb', region_name=region)
        self.table_names = dict(table_names)

    def table(self, collection):
        name = self.table_names.get(collection)
        if not name:
            raise StoreError(f'Unknown collection: {collection}')
        return self.resource.Table(name)

    def add(self, collection, data):
        doc_id = generate_id()
        item = _convert_floats_to_decimal({**data, 'id': doc_id})
        try:
            self.table(collection).put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.exception('put_item failed on %s', collection)
            raise StoreError(str(e)) from e
        return doc_id

    def get(self, collection, doc_id):
        try:
            resp = self.table(collection).get_item(Key={'id': doc_id})
        except (ClientError, BotoCoreError) as e:
            logger.exception('get_item failed on %s/%s', collection, doc_id)
            raise StoreError(str(e)) from e
        item = resp.get('Item')
        return _convert_decimals(item) if item else None

    def _scan(self, collection, condition=None):
        table = self.table(collection)
        kwargs = {}
        if condition is not None:
            kwargs['FilterExpression'] = condition
        items = []
        try:
            while True:
                resp = table.scan(**kwargs)
                items.extend(resp.get('Items', []))
                last_key = resp.get('LastEvaluatedKey')
                if not last_key:
                    break
                kwargs['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            logger.exception('scan failed on %s', collection)
            raise StoreError(str(e)) from e
        return [_convert_decimals(item) for item in items]

    def scan(self, collection):
        return self._scan(collection)

    def query(self, collection, **equals):
        """Documents whose fields equal every given value"""
        condition = None
        for field, value in equals.items():
            term = Attr(field).eq(_convert_floats_to_decimal(value))
            condition = term if condition is None else condition & term
        return self._scan(collection, condition)

    def update(self, collection, doc_id, changes):
        if not changes:
            return
        names = {}
        values = {}
        assignments = []
        for i, (field, value) in enumerate(changes.items()):
            names[f'#f{i}'] = field
            values[f':val{i}'] = value
            assignments.append(f'#f{i} = :val{i}')
        try:
            self.table(collection).update_item(
                Key={'id': doc_id},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression=Attr('id').exists(),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=_convert_floats_to_decimal(values)
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise DocumentNotFound(f'{collection}/{doc_id} not found') from e
            logger.exception('update_item failed on %s/%s', collection, doc_id)
            raise StoreError(str(e)) from e
        except BotoCoreError as e:
            logger.exception('update_item failed on %s/%s', collection, doc_id)
            raise StoreError(str(e)) from e

    def delete(self, collection, doc_id):
        try:
            self.table(collection).delete_item(Key={'id': doc_id})
        except (ClientError, BotoCoreError) as e:
            logger.exception('delete_item failed on %s/%s', collection, doc_id)
            raise StoreError(str(e)) from e


class MemoryStore:
    def __init__(self, data_dir=None):
        self.data_dir = data_dir
        self.collections = {}
        if data_dir:
            os.makedirs(data_dir, exist_ok=True)

    def _path(self, collection):
        return os.path.join(self.data_dir, f'{collection}.json')

    def _load_json_file(self, collection):
        path = self._path(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f'Error loading {path}: {e}') from e

    def _save_json_file(self, collection):
        path = self._path(collection)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(list(self.collections[collection].values()), f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StoreError(f'Error saving {path}: {e}') from e

    def _collection(self, collection):
        if collection not in self.collections:
            docs = self._load_json_file(collection) if self.data_dir else []
            self.collections[collection] = {d['id']: d for d in docs if d.get('id')}
        return self.collections[collection]

    def _persist(self, collection):
        if self.data_dir:
            self._save_json_file(collection)

    def add(self, collection, data):
        doc_id = generate_id()
        self._collection(collection)[doc_id] = copy.deepcopy({**data, 'id': doc_id})
        self._persist(collection)
        return doc_id

    def get(self, collection, doc_id):
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc else None

    def scan(self, collection):
        return [copy.deepcopy(d) for d in self._collection(collection).values()]

    def query(self, collection, **equals):
        return [
            copy.deepcopy(d) for d in self._collection(collection).values()
            if all(d.get(field) == value for field, value in equals.items())
        ]

    def update(self, collection, doc_id, changes):
        docs = self._collection(collection)
        if doc_id not in docs:
            raise DocumentNotFound(f'{collection}/{doc_id} not found')
        docs[doc_id].update(copy.deepcopy(changes))
        self._persist(collection)

    def delete(self, collection, doc_id):
        self._collection(collection).pop(doc_id, None)
        self._persist(collection)
