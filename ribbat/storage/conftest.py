# ribbat/storage/conftest.py
"""
저장소 테스트용 fixture.

문서 저장소 백엔드는 실제 Firestore 대신 메모리 기반 대체 클라이언트로 테스트합니다.
- 트랜잭션 쓰기는 버퍼에 모았다가 commit 시 한꺼번에 반영합니다. (중간 실패 시 아무것도 반영되지 않음)
- firestore.transactional 은 재시도 없이 함수 실행 후 commit 하는 데코레이터로 교체합니다.
"""

import copy
import itertools
from collections import defaultdict

import pytest
from firebase_admin import firestore
from google.api_core.exceptions import Aborted, NotFound

from ribbat.storage.firestore_storage import FirestoreStorage
from ribbat.storage.sql_storage import SqlStorage


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self.exists = data is not None
        self._data = copy.deepcopy(data)

    def to_dict(self):
        return copy.deepcopy(self._data) if self.exists else None


class FakeDocumentReference:
    def __init__(self, client, collection_name, doc_id):
        self._client = client
        self._collection_name = collection_name
        self.id = doc_id

    def get(self, transaction=None):
        return FakeSnapshot(self, self._client.store[self._collection_name].get(self.id))

    def set(self, data):
        self._client.commit_writes([('set', self, data)])

    def update(self, data):
        self._client.commit_writes([('update', self, data)])

    def delete(self):
        self._client.commit_writes([('delete', self, None)])


class FakeQuery:
    def __init__(self, client, collection_name, filters=(), orders=(), limit_count=None):
        self._client = client
        self._collection_name = collection_name
        self._filters = filters
        self._orders = orders
        self._limit_count = limit_count

    def _copy(self, **changes):
        params = dict(filters=self._filters, orders=self._orders, limit_count=self._limit_count)
        params.update(changes)
        return FakeQuery(self._client, self._collection_name, **params)

    def where(self, field_path, op_string, value):
        if op_string == 'in':
            self._client.in_query_sizes.append(len(value))
            if len(value) > self._client.max_in_values:
                raise ValueError("'in' 쿼리 값 개수 초과")
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path, direction='ASCENDING'):
        return self._copy(orders=self._orders + ((field_path, direction),))

    def limit(self, count):
        return self._copy(limit_count=count)

    def _matches(self, doc_id, data):
        for field_path, op_string, value in self._filters:
            if field_path == '__name__':
                actual = doc_id
                value = [ref.id for ref in value] if op_string == 'in' else value.id
            else:
                actual = data.get(field_path)
            if op_string == '==' and actual != value:
                return False
            if op_string == 'in' and actual not in value:
                return False
        return True

    def _run(self):
        docs = [
            (doc_id, data)
            for doc_id, data in self._client.store[self._collection_name].items()
            if self._matches(doc_id, data)
        ]
        # 동률은 마지막 정렬 방향을 따르는 문서 ID 순으로 정렬
        last_direction = self._orders[-1][1] if self._orders else 'ASCENDING'
        docs.sort(key=lambda item: item[0], reverse=last_direction == 'DESCENDING')
        for field_path, direction in reversed(self._orders):
            docs.sort(key=lambda item: item[1].get(field_path), reverse=direction == 'DESCENDING')
        if self._limit_count is not None:
            docs = docs[:self._limit_count]
        return [
            FakeSnapshot(FakeDocumentReference(self._client, self._collection_name, doc_id), data)
            for doc_id, data in docs
        ]

    def stream(self, transaction=None):
        return iter(self._run())

    def get(self, transaction=None):
        return self._run()


class FakeCollectionReference(FakeQuery):
    def __init__(self, client, collection_name):
        super().__init__(client, collection_name)

    def document(self, document_id=None):
        if document_id is None:
            # 생성 순서대로 정렬되는 ID
            document_id = f"doc{next(self._client.id_sequence):06d}"
        return FakeDocumentReference(self._client, self._collection_name, document_id)


class FakeTransaction:
    def __init__(self, client):
        self._client = client
        self._writes = []

    def set(self, reference, data):
        self._writes.append(('set', reference, data))

    def update(self, reference, data):
        self._writes.append(('update', reference, data))

    def delete(self, reference):
        self._writes.append(('delete', reference, None))

    def commit(self):
        self._client.commit_writes(self._writes)


class FakeFirestoreClient:
    def __init__(self, max_in_values=30):
        self.store = defaultdict(dict)
        self.id_sequence = itertools.count(1)
        self.max_in_values = max_in_values
        self.in_query_sizes = []
        self.fail_next_commit = False

    def collection(self, name):
        return FakeCollectionReference(self, name)

    def transaction(self):
        return FakeTransaction(self)

    def commit_writes(self, writes):
        if self.fail_next_commit:
            self.fail_next_commit = False
            raise Aborted("Transaction aborted")

        staged = copy.deepcopy(self.store)
        for operation, reference, data in writes:
            documents = staged[reference._collection_name]
            if operation == 'set':
                documents[reference.id] = copy.deepcopy(data)
            elif operation == 'update':
                if reference.id not in documents:
                    raise NotFound(f"No document to update: {reference.id}")
                current = documents[reference.id]
                for field_name, value in data.items():
                    if isinstance(value, firestore.Increment):
                        current[field_name] = (current.get(field_name) or 0) + value.value
                    else:
                        current[field_name] = copy.deepcopy(value)
            else:
                documents.pop(reference.id, None)
        self.store = staged


def _run_and_commit(func):
    def wrapper(transaction, *args, **kwargs):
        result = func(transaction, *args, **kwargs)
        transaction.commit()
        return result
    return wrapper


@pytest.fixture
def fake_firestore(monkeypatch):
    monkeypatch.setattr(firestore, 'transactional', _run_and_commit)
    return FakeFirestoreClient()


@pytest.fixture
def sql_storage():
    storage = SqlStorage('sqlite://')
    yield storage
    storage.close()


@pytest.fixture
def firestore_storage(fake_firestore):
    return FirestoreStorage(db=fake_firestore)


@pytest.fixture(params=['sql', 'firestore'])
def storage(request):
    """두 백엔드에 같은 계약 테스트를 실행하기 위한 fixture."""
    return request.getfixturevalue(f'{request.param}_storage')
