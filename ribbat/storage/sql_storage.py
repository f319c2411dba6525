# ribbat/storage/sql_storage.py
"""
관계형 저장소 백엔드 (SQLAlchemy).

- 정수 surrogate key 를 사용하고 외래 키 제약을 강제합니다.
- 목록 조회 시 작성자는 고유 author_id 집합으로 한 번의 IN 쿼리로 가져옵니다.
- comment_count 는 애플리케이션에서 계산하지 않고 `comment_count = comment_count + 1` 같은
  단일 UPDATE 식으로 댓글 INSERT/DELETE 와 같은 트랜잭션 안에서 변경합니다.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case, create_engine, delete, event, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ribbat.models.comment import Comment
from ribbat.models.post import Post
from ribbat.models.user import User
from ribbat.storage.base import StorageBackend
from ribbat.storage.exceptions import DuplicateUserError, InvalidReferenceError
from ribbat.storage.sql_models import Base, CommentRow, PostRow, UserRow
from ribbat.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

# SQL BIGINT / SQLite INTEGER 의 최댓값
MAX_KEY = 2 ** 63 - 1


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite 는 연결마다 외래 키 검사를 켜야 합니다.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SqlStorage(StorageBackend):
    """SQLAlchemy 기반 관계형 저장소. 키 타입은 int 입니다."""

    UNKNOWN_AUTHOR_ID = 0

    def __init__(self, database_url: str = "sqlite:///ribbat.db", echo: bool = False):
        url = make_url(database_url)
        engine_kwargs: Dict[str, Any] = {"echo": echo}
        is_sqlite = url.get_backend_name() == "sqlite"
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                # 인메모리 DB 는 연결 하나를 모든 세션이 공유해야 같은 데이터를 봅니다.
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(url, **engine_kwargs)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"SQL storage: {url.render_as_string(hide_password=True)}")

    def parse_key(self, raw: Any) -> Optional[int]:
        if isinstance(raw, bool):
            return None
        if isinstance(raw, str):
            raw = raw.strip()
            if not (raw.isascii() and raw.isdigit()):
                return None
            raw = int(raw)
        if isinstance(raw, int) and 0 < raw <= MAX_KEY:
            return raw
        return None

    # --- 변환 헬퍼 ---

    @staticmethod
    def _to_user(row: UserRow) -> User:
        return User(
            id=row.id,
            uid=row.uid,
            display_name=row.display_name,
            email=row.email,
            photo_url=row.photo_url,
            created_at=DateTimeUtils.as_utc(row.created_at),
        )

    @staticmethod
    def _to_post(row: PostRow) -> Post:
        return Post(
            id=row.id,
            title=row.title,
            content=row.content,
            author_id=row.author_id,
            created_at=DateTimeUtils.as_utc(row.created_at),
            updated_at=DateTimeUtils.as_utc(row.updated_at),
            tags=list(row.tags or []),
            comment_count=row.comment_count,
        )

    @staticmethod
    def _to_comment(row: CommentRow) -> Comment:
        return Comment(
            id=row.id,
            content=row.content,
            author_id=row.author_id,
            post_id=row.post_id,
            created_at=DateTimeUtils.as_utc(row.created_at),
            updated_at=DateTimeUtils.as_utc(row.updated_at),
            is_edited=bool(row.is_edited),
            parent_id=row.parent_id,
            element_id=row.element_id,
            selected_text=row.selected_text,
            selection_start=row.selection_start,
            selection_end=row.selection_end,
        )

    def _load_authors(self, session, author_ids: Iterable[int]) -> Dict[int, User]:
        """고유 author_id 집합을 한 번의 IN 쿼리로 조회하여 id -> User 맵을 만듭니다."""
        ids = {author_id for author_id in author_ids if author_id is not None}
        if not ids:
            return {}
        rows = session.scalars(select(UserRow).where(UserRow.id.in_(ids))).all()
        return {row.id: self._to_user(row) for row in rows}

    # --- User ---

    def get_user(self, user_id: Any) -> Optional[User]:
        key = self.parse_key(user_id)
        if key is None:
            return None
        with self.Session() as session:
            row = session.get(UserRow, key)
            return self._to_user(row) if row else None

    def get_user_by_external_id(self, uid: str) -> Optional[User]:
        with self.Session() as session:
            row = session.scalars(select(UserRow).where(UserRow.uid == uid)).first()
            return self._to_user(row) if row else None

    def get_all_users(self) -> List[User]:
        with self.Session() as session:
            rows = session.scalars(
                select(UserRow).order_by(UserRow.created_at.desc(), UserRow.id.desc())
            ).all()
            return [self._to_user(row) for row in rows]

    def _insert_user(self, payload: Dict[str, Any]) -> User:
        row = UserRow(
            uid=payload['uid'],
            display_name=payload['display_name'],
            email=payload['email'],
            photo_url=payload.get('photo_url'),
            created_at=DateTimeUtils.now(),
        )
        try:
            with self.Session.begin() as session:
                session.add(row)
        except IntegrityError as e:
            # uid unique 제약 위반만 도메인 예외로 바꾸고 나머지는 그대로 전파합니다.
            if self.get_user_by_external_id(payload['uid']) is not None:
                raise DuplicateUserError(payload['uid']) from e
            raise
        logger.info(f"사용자 생성 (user_id: {row.id}, uid: {row.uid})")
        return self._to_user(row)

    def _update_user(self, user_id: Any, changes: Dict[str, Any]) -> Optional[User]:
        key = self.parse_key(user_id)
        if key is None:
            return None
        with self.Session.begin() as session:
            row = session.get(UserRow, key)
            if row is None:
                return None
            for field_name, value in changes.items():
                setattr(row, field_name, value)
            session.flush()
            user = self._to_user(row)
        return user

    # --- Post ---

    def get_post(self, post_id: Any) -> Optional[Post]:
        key = self.parse_key(post_id)
        if key is None:
            return None
        with self.Session() as session:
            row = session.get(PostRow, key)
            if row is None:
                return None
            authors = self._load_authors(session, [row.author_id])
            return self._with_author(self._to_post(row), authors)

    def get_all_posts(self) -> List[Post]:
        with self.Session() as session:
            rows = session.scalars(
                select(PostRow).order_by(PostRow.created_at.desc(), PostRow.id.desc())
            ).all()
            authors = self._load_authors(session, (row.author_id for row in rows))
            return [self._with_author(self._to_post(row), authors) for row in rows]

    def get_posts_by_author(self, author_id: Any) -> List[Post]:
        key = self.parse_key(author_id)
        if key is None:
            return []
        with self.Session() as session:
            rows = session.scalars(
                select(PostRow)
                .where(PostRow.author_id == key)
                .order_by(PostRow.created_at.desc(), PostRow.id.desc())
            ).all()
            # 작성자는 한 명이므로 한 번만 조회
            authors = self._load_authors(session, [key])
            return [self._with_author(self._to_post(row), authors) for row in rows]

    def _insert_post(self, payload: Dict[str, Any], author_id: Any) -> Post:
        key = self.parse_key(author_id)
        if key is None:
            raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")

        now = DateTimeUtils.now()
        with self.Session.begin() as session:
            author_row = session.get(UserRow, key)
            if author_row is None:
                raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")
            row = PostRow(
                title=payload['title'],
                content=payload['content'],
                tags=list(payload['tags']),
                author_id=key,
                comment_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            post = replace(self._to_post(row), author=self._to_user(author_row))
        logger.info(f"게시글 생성 (post_id: {post.id}, author_id: {key})")
        return post

    def _update_post(self, post_id: Any, changes: Dict[str, Any]) -> Optional[Post]:
        key = self.parse_key(post_id)
        if key is None:
            return None
        with self.Session.begin() as session:
            row = session.get(PostRow, key)
            if row is None:
                return None
            for field_name, value in changes.items():
                setattr(row, field_name, list(value) if field_name == 'tags' else value)
            row.updated_at = DateTimeUtils.now()
            session.flush()
            post = self._to_post(row)
            authors = self._load_authors(session, [row.author_id])
        return self._with_author(post, authors)

    def delete_post(self, post_id: Any) -> bool:
        key = self.parse_key(post_id)
        if key is None:
            return False
        with self.Session.begin() as session:
            # 댓글 간 parent 참조를 먼저 끊어야 외래 키 제약에 걸리지 않습니다.
            session.execute(
                update(CommentRow)
                .where(CommentRow.post_id == key)
                .values(parent_id=None)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(CommentRow)
                .where(CommentRow.post_id == key)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                delete(PostRow)
                .where(PostRow.id == key)
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount > 0
        if deleted:
            logger.info(f"게시글 삭제 (post_id: {key})")
        return deleted

    # --- Comment ---

    def get_comment(self, comment_id: Any) -> Optional[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return None
        with self.Session() as session:
            row = session.get(CommentRow, key)
            if row is None:
                return None
            authors = self._load_authors(session, [row.author_id])
            return self._with_author(self._to_comment(row), authors)

    def _list_comments(self, condition) -> List[Comment]:
        with self.Session() as session:
            rows = session.scalars(
                select(CommentRow)
                .where(condition)
                .order_by(CommentRow.created_at.asc(), CommentRow.id.asc())
            ).all()
            authors = self._load_authors(session, (row.author_id for row in rows))
            return [self._with_author(self._to_comment(row), authors) for row in rows]

    def get_comments_by_post(self, post_id: Any) -> List[Comment]:
        key = self.parse_key(post_id)
        if key is None:
            return []
        return self._list_comments(CommentRow.post_id == key)

    def get_comment_replies(self, comment_id: Any) -> List[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return []
        return self._list_comments(CommentRow.parent_id == key)

    def _insert_comment(self, payload: Dict[str, Any], author_id: Any) -> Comment:
        author_key = self.parse_key(author_id)
        if author_key is None:
            raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")
        post_id = payload['post_id']
        parent_id = payload['parent_id']

        now = DateTimeUtils.now()
        with self.Session.begin() as session:
            if session.get(PostRow, post_id) is None:
                raise InvalidReferenceError(f"게시글 {post_id!r} 을(를) 찾을 수 없습니다.")
            author_row = session.get(UserRow, author_key)
            if author_row is None:
                raise InvalidReferenceError(f"작성자 {author_id!r} 을(를) 찾을 수 없습니다.")
            if parent_id is not None:
                parent = session.get(CommentRow, parent_id)
                if parent is None or parent.post_id != post_id:
                    raise InvalidReferenceError(
                        f"부모 댓글 {parent_id!r} 이(가) 게시글 {post_id!r} 에 존재하지 않습니다."
                    )

            row = CommentRow(
                content=payload['content'],
                author_id=author_key,
                post_id=post_id,
                parent_id=parent_id,
                element_id=payload.get('element_id'),
                selected_text=payload.get('selected_text'),
                selection_start=payload.get('selection_start'),
                selection_end=payload.get('selection_end'),
                is_edited=False,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            session.execute(
                update(PostRow)
                .where(PostRow.id == post_id)
                .values(comment_count=PostRow.comment_count + 1)
                .execution_options(synchronize_session=False)
            )
            comment = replace(self._to_comment(row), author=self._to_user(author_row))
        logger.info(f"댓글 생성 (comment_id: {comment.id}, post_id: {post_id})")
        return comment

    def _update_comment(self, comment_id: Any, changes: Dict[str, Any]) -> Optional[Comment]:
        key = self.parse_key(comment_id)
        if key is None:
            return None
        with self.Session.begin() as session:
            row = session.get(CommentRow, key, with_for_update=True)
            if row is None:
                return None
            if 'content' in changes and changes['content'] != row.content:
                row.is_edited = True
            for field_name, value in changes.items():
                setattr(row, field_name, value)
            row.updated_at = DateTimeUtils.now()
            session.flush()
            comment = self._to_comment(row)
            authors = self._load_authors(session, [row.author_id])
        return self._with_author(comment, authors)

    def delete_comment(self, comment_id: Any) -> bool:
        key = self.parse_key(comment_id)
        if key is None:
            return False
        with self.Session.begin() as session:
            row = session.get(CommentRow, key)
            if row is None:
                return False
            post_id = row.post_id

            # 직계 답글은 최상위 댓글로 승격
            session.execute(
                update(CommentRow)
                .where(CommentRow.parent_id == key)
                .values(parent_id=None)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                delete(CommentRow)
                .where(CommentRow.id == key)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # 다른 요청이 먼저 삭제한 경우 카운터는 건드리지 않습니다.
                return False
            session.execute(
                update(PostRow)
                .where(PostRow.id == post_id)
                .values(comment_count=case(
                    (PostRow.comment_count > 0, PostRow.comment_count - 1),
                    else_=0,
                ))
                .execution_options(synchronize_session=False)
            )
        logger.info(f"댓글 삭제 (comment_id: {key}, post_id: {post_id})")
        return True

    def close(self):
        self.engine.dispose()
