# ribbat/storage/firestore_storage.py
"""
문서 저장소 백엔드 (Cloud Firestore).

Firestore 에는 조인이 없으므로 작성자 정보는 별도 조회로 채웁니다.
- 목록 조회 시 고유 author_id 를 `in` 쿼리로 묶어서 가져오되, `in` 쿼리가 허용하는 최대 개수
  (in_query_limit)씩 나누어 여러 번 조회한 뒤 합칩니다. 개수 제한 때문에 작성자가 잘리는 일은 없습니다.
- comment_count 는 firestore.Increment 로만 변경하며, 댓글 쓰기/삭제와 같은 트랜잭션에서 커밋됩니다.
- 참조 무결성은 저장소가 보장하지 않으므로 이 클래스에서 직접 검사합니다.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from firebase_admin import firestore

from ribbat.models.comment import Comment
from ribbat.models.post import Post
from ribbat.models.user import User
from ribbat.storage.base import StorageBackend
from ribbat.storage.exceptions import DuplicateUserError, InvalidReferenceError
from ribbat.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

USERS_COLLECTION = 'users'
POSTS_COLLECTION = 'posts'
COMMENTS_COLLECTION = 'comments'

# Firestore `in` 쿼리의 최대 비교 값 개수 (과거에는 10)
DEFAULT_IN_QUERY_LIMIT = 30


class FirestoreStorage(StorageBackend):
    """Firestore 기반 문서 저장소. 키 타입은 Firestore 가 생성한 문서 ID(str) 입니다."""

    UNKNOWN_AUTHOR_ID = 'unknown'

    def __init__(self, db=None, in_query_limit: int = DEFAULT_IN_QUERY_LIMIT):
        """
        :param db: Firestore 클라이언트. 없으면 초기화된 firebase_admin 앱의 클라이언트를 사용합니다.
        :param in_query_limit: 작성자 일괄 조회 시 `in` 쿼리 하나에 넣을 최대 ID 개수
        """
        if in_query_limit < 1:
            raise ValueError("in_query_limit 은 1 이상이어야 합니다.")
        self.db = db if db is not None else firestore.client()
        self.users_ref = self.db.collection(USERS_COLLECTION)
        self.posts_ref = self.db.collection(POSTS_COLLECTION)
        self.comments_ref = self.db.collection(COMMENTS_COLLECTION)
        self.in_query_limit = in_query_limit
        logger.info(f"Firestore storage (in_query_limit={in_query_limit})")

    def parse_key(self, raw: Any) -> Optional[str]:
        if not isinstance(raw, str):
            return None
        raw = raw.strip()
        if not raw or '/' in raw:
            return None
        return raw

    # --- 변환 헬퍼 ---

    @staticmethod
    def _user_from_dict(doc_id: str, data: Dict[str, Any]) -> User:
        data = DateTimeUtils.from_firestore(data)
        return User(
            id=doc_id,
            uid=data.get('uid'),
            display_name=data.get('display_name'),
            email=data.get('email', ''),
            photo_url=data.get('photo_url'),
            created_at=data.get('created_at'),
        )

    @staticmethod
    def _post_from_dict(doc_id: str, data: Dict[str, Any]) -> Post:
        data = DateTimeUtils.from_firestore(data)
        return Post(
            id=doc_id,
            title=data.get('title'),
            content=data.get('content'),
            author_id=data.get('author_id'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            tags=list(data.get('tags') or []),
            comment_count=data.get('comment_count', 0),
        )

    @staticmethod
    def _comment_from_dict(doc_id: str, data: Dict[str, Any]) -> Comment:
        data = DateTimeUtils.from_firestore(data)
        return Comment(
            id=doc_id,
            content=data.get('content'),
            author_id=data.get('author_id'),
            post_id=data.get('post_id'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            is_edited=data.get('is_edited', False),
            parent_id=data.get('parent_id'),
            element_id=data.get('element_id'),
            selected_text=data.get('selected_text'),
            selection_start=data.get('selection_start'),
            selection_end=data.get('selection_end'),
        )

    def _get_authors(self, author_ids: Iterable[str]) -> Dict[str, User]:
        """
        고유 author_id 들을 in_query_limit 개씩 나누어 `in` 쿼리로 조회하고 결과를 합칩니다.
        """
        unique_ids = list(dict.fromkeys(a for a in author_ids if self.parse_key(a)))
        authors: Dict[str, User] = {}
        for start in range(0, len(unique_ids), self.in_query_limit):
            chunk = unique_ids[start:start + self.in_query_limit]
            refs = [self.users_ref.document(author_id) for author_id in chunk]
            for doc in self.users_ref.where('__name__', 'in', refs).stream():
                authors[doc.id] = self._user_from_dict(doc.id, doc.to_dict())
        return authors

    def _enrich(self, records: List[Any]) -> List[Any]:
        authors = self._get_authors(record.author_id for record in records)
        return [self._with_author(record, authors) for record in records]

    # --- User ---

    def get_user(self, user_id: Any) -> Optional[User]:
        key = self.parse_key(user_id)
        if key is None:
            return None
        doc = self.users_ref.document(key).get()
        if not doc.exists:
            return None
        return self._user_from_dict(doc.id, doc.to_dict())

    def get_user_by_external_id(self, uid: str) -> Optional[User]:
        query = self.users_ref.where('uid', '==', uid).limit(1).stream()
        user_doc = next(query, None)
        if user_doc is None:
            return None
        return self._user_from_dict(user_doc.id, user_doc.to_dict())

    def get_all_users(self) -> List[User]:
        docs = self.users_ref.order_by('created_at', direction=firestore.Query.DESCENDING).stream()
        return [self._user_from_dict(doc.id, doc.to_dict()) for doc in docs]

    def _insert_user(self, payload: Dict[str, Any]) -> User:
        user_ref = self.users_ref.document()
        user_data = {
            'uid': payload['uid'],
            'display_name': payload['display_name'],
            'email': payload['email'],
            'photo_url': payload.get('photo_url'),
            'created_at': DateTimeUtils.now(),
        }

        transaction = self.db.transaction()

        @firestore.transactional
        def _create_in_transaction(transaction, uid):
            # Firestore 에는 unique 제약이 없으므로 같은 트랜잭션에서 uid 중복을 확인합니다.
            existing = self.users_ref.where('uid', '==', uid).limit(1).get(transaction=transaction)
            if existing:
                raise DuplicateUserError(uid)
            transaction.set(user_ref, DateTimeUtils.for_firestore(user_data))

        _create_in_transaction(transaction, payload['uid'])
        logger.info(f"사용자 생성 (user_id: {user_ref.id}, uid: {payload['uid']})")
        return self._user_from_dict(user_ref.id, user_data)

    def _update_user(self, user_id: Any, changes: Dict[str, Any]) -> Optional[User]:
        key = self.parse_key(user_id)
        if key is None:
            return None
        user_ref = self.users_ref.document(key)
        doc = user_ref.get()
        if not doc.exists:
            return None
        if changes:
            user_ref.update(changes)
        updated_doc = user_ref.get()
        return self._user_from_dict(updated_doc.id, updated_doc.to_dict())

    # --- Post ---

    def get_post(self, post_id: Any) -> Optional[Post]:
        key = self.parse_key(post_id)
        if key is None:
            return None
        doc = self.posts_ref.document(key).get()
        if not doc.exists:
            return None
        return self._enrich([self._post_from_dict(doc.id, doc.to_dict())])[0]

    def get_all_posts(self) -> List[Post]:
        docs = self.posts_ref.order_by('created_at', direction=firestore.Query.DESCENDING).stream()
        return self._enrich([self._post_from_dict(doc.id, doc.to_dict()) for doc in docs])

    def get_posts_by_author(self, author_id: Any) -> List[Post]:
        key = self.parse_key(author_id)
        if key is None:
            return []
        query = (
            self.posts_ref
            .where('author_id', '==', key)
            .order_by('created_at', direction=firestore.Query.DESCENDING)
        )
        posts = [self._post_from_dict(doc.id, doc.to_dict()) for doc in query.stream()]
        if not posts:
            return []
        # 작성자는 한 명이므로 한 번만 조회
        authors = self._get_authors([key])
        return [self._with_author(post, authors) for post in posts]

    def _insert_post(self, payload: Dict[str, Any], author_id: Any) -> Post:
        key = self.parse_key(author_id)
        author = self.get_user(key) if key else None
        if author is None:
            raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")

        now = DateTimeUtils.now()
        post_ref = self.posts_ref.document()
        post_data = {
            'title': payload['title'],
            'content': payload['content'],
            'tags': list(payload['tags']),
            'author_id': key,
            'comment_count': 0,
            'created_at': now,
            'updated_at': now,
        }
        post_ref.set(DateTimeUtils.for_firestore(post_data))
        logger.info(f"게시글 생성 (post_id: {post_ref.id}, author_id: {key})")
        return self._with_author(self._post_from_dict(post_ref.id, post_data), {key: author})

    def _update_post(self, post_id: Any, changes: Dict[str, Any]) -> Optional[Post]:
        key = self.parse_key(post_id)
        if key is None:
            return None
        post_ref = self.posts_ref.document(key)
        update_data = {**changes, 'updated_at': DateTimeUtils.now()}

        transaction = self.db.transaction()

        @firestore.transactional
        def _update_in_transaction(transaction):
            snapshot = post_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            transaction.update(post_ref, DateTimeUtils.for_firestore(update_data))
            return {**snapshot.to_dict(), **update_data}

        post_data = _update_in_transaction(transaction)
        if post_data is None:
            return None
        return self._enrich([self._post_from_dict(key, post_data)])[0]

    def delete_post(self, post_id: Any) -> bool:
        key = self.parse_key(post_id)
        if key is None:
            return False
        post_ref = self.posts_ref.document(key)

        transaction = self.db.transaction()

        @firestore.transactional
        def _delete_in_transaction(transaction):
            snapshot = post_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            comment_docs = self.comments_ref.where('post_id', '==', key).get(transaction=transaction)
            for comment_doc in comment_docs:
                transaction.delete(comment_doc.reference)
            transaction.delete(post_ref)
            return True

        try:
            deleted = _delete_in_transaction(transaction)
        except Exception as e:
            logger.error(f"게시글 삭제 실패 (post_id: {key}): {e}", exc_info=True)
            raise
        if deleted:
            logger.info(f"게시글 삭제 (post_id: {key})")
        return deleted

    # --- Comment ---

    def get_comment(self, comment_id: Any) -> Optional[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return None
        doc = self.comments_ref.document(key).get()
        if not doc.exists:
            return None
        return self._enrich([self._comment_from_dict(doc.id, doc.to_dict())])[0]

    def _list_comments(self, field_name: str, value: str) -> List[Comment]:
        query = self.comments_ref.where(field_name, '==', value).order_by('created_at')
        return self._enrich([self._comment_from_dict(doc.id, doc.to_dict()) for doc in query.stream()])

    def get_comments_by_post(self, post_id: Any) -> List[Comment]:
        key = self.parse_key(post_id)
        if key is None:
            return []
        return self._list_comments('post_id', key)

    def get_comment_replies(self, comment_id: Any) -> List[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return []
        return self._list_comments('parent_id', key)

    def _insert_comment(self, payload: Dict[str, Any], author_id: Any) -> Comment:
        author_key = self.parse_key(author_id)
        author = self.get_user(author_key) if author_key else None
        if author is None:
            raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")

        post_id = payload['post_id']
        parent_id = payload['parent_id']
        now = DateTimeUtils.now()
        comment_ref = self.comments_ref.document()
        comment_data = {
            'content': payload['content'],
            'author_id': author_key,
            'post_id': post_id,
            'parent_id': parent_id,
            'element_id': payload.get('element_id'),
            'selected_text': payload.get('selected_text'),
            'selection_start': payload.get('selection_start'),
            'selection_end': payload.get('selection_end'),
            'is_edited': False,
            'created_at': now,
            'updated_at': now,
        }

        transaction = self.db.transaction()

        @firestore.transactional
        def _create_in_transaction(transaction):
            post_ref = self.posts_ref.document(post_id)
            post_snapshot = post_ref.get(transaction=transaction)
            if not post_snapshot.exists:
                raise InvalidReferenceError(f"게시글 {post_id!r} 을(를) 찾을 수 없습니다.")
            if parent_id is not None:
                parent_snapshot = self.comments_ref.document(parent_id).get(transaction=transaction)
                if not parent_snapshot.exists or parent_snapshot.to_dict().get('post_id') != post_id:
                    raise InvalidReferenceError(
                        f"부모 댓글 {parent_id!r} 이(가) 게시글 {post_id!r} 에 존재하지 않습니다."
                    )

            transaction.set(comment_ref, DateTimeUtils.for_firestore(comment_data))
            transaction.update(post_ref, {'comment_count': firestore.Increment(1)})

        _create_in_transaction(transaction)
        logger.info(f"댓글 생성 (comment_id: {comment_ref.id}, post_id: {post_id})")
        return self._with_author(
            self._comment_from_dict(comment_ref.id, comment_data), {author_key: author}
        )

    def _update_comment(self, comment_id: Any, changes: Dict[str, Any]) -> Optional[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return None
        comment_ref = self.comments_ref.document(key)
        now = DateTimeUtils.now()

        transaction = self.db.transaction()

        @firestore.transactional
        def _update_in_transaction(transaction):
            snapshot = comment_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            current = snapshot.to_dict()
            update_data = {**changes, 'updated_at': now}
            if 'content' in changes and changes['content'] != current.get('content'):
                update_data['is_edited'] = True
            transaction.update(comment_ref, DateTimeUtils.for_firestore(update_data))
            return {**current, **update_data}

        comment_data = _update_in_transaction(transaction)
        if comment_data is None:
            return None
        return self._enrich([self._comment_from_dict(key, comment_data)])[0]

    def delete_comment(self, comment_id: Any) -> bool:
        key = self.parse_key(comment_id)
        if key is None:
            return False
        comment_ref = self.comments_ref.document(key)

        transaction = self.db.transaction()

        @firestore.transactional
        def _delete_in_transaction(transaction):
            snapshot = comment_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False, None
            post_id = snapshot.to_dict().get('post_id')
            post_ref = self.posts_ref.document(post_id) if post_id else None
            post_snapshot = post_ref.get(transaction=transaction) if post_ref else None
            replies = self.comments_ref.where('parent_id', '==', key).get(transaction=transaction)

            # 트랜잭션 안에서는 모든 읽기가 쓰기보다 먼저 와야 합니다.
            for reply in replies:
                transaction.update(reply.reference, {'parent_id': None})
            transaction.delete(comment_ref)
            if post_snapshot is not None and post_snapshot.exists:
                if (post_snapshot.to_dict().get('comment_count') or 0) > 0:
                    transaction.update(post_ref, {'comment_count': firestore.Increment(-1)})
            return True, post_id

        try:
            deleted, post_id = _delete_in_transaction(transaction)
        except Exception as e:
            logger.error(f"댓글 삭제 실패 (comment_id: {key}): {e}", exc_info=True)
            raise
        if deleted:
            logger.info(f"댓글 삭제 (comment_id: {key}, post_id: {post_id})")
        return deleted
