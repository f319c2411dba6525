# ribbat/storage/base.py
"""
저장소 백엔드 공통 인터페이스.

API 계층은 이 클래스 타입에만 의존하며, 프로세스 시작 시 선택된 백엔드 인스턴스 하나가
모든 호출을 처리합니다. 생성/수정 요청은 여기서 스키마 검증을 마친 뒤에만 백엔드로 전달됩니다.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ribbat.models.comment import Comment
from ribbat.models.post import Post
from ribbat.models.user import User, unknown_author
from ribbat.schemas.comment_schema import CommentCreateSchema, CommentUpdateSchema
from ribbat.schemas.post_schema import PostCreateSchema, PostUpdateSchema
from ribbat.schemas.user_schema import UserCreateSchema, UserUpdateSchema
from ribbat.storage.exceptions import InvalidReferenceError


class StorageBackend(ABC):
    """Interface that all storage backends must implement."""

    # 작성자를 찾지 못했을 때 대체 작성자에 부여하는 id
    UNKNOWN_AUTHOR_ID: Any = None

    @abstractmethod
    def parse_key(self, raw: Any) -> Optional[Any]:
        """외부에서 받은 식별자를 이 백엔드의 키 타입으로 변환합니다. 불가능하면 None."""

    # --- User ---

    @abstractmethod
    def get_user(self, user_id: Any) -> Optional[User]:
        """id로 사용자를 조회합니다."""

    @abstractmethod
    def get_user_by_external_id(self, uid: str) -> Optional[User]:
        """외부 인증 uid로 사용자를 조회합니다."""

    @abstractmethod
    def get_all_users(self) -> List[User]:
        """전체 사용자 목록 (최신 가입 순)."""

    def create_user(self, data: Dict[str, Any]) -> User:
        payload = UserCreateSchema().load(data)
        return self._insert_user(payload)

    def update_user(self, user_id: Any, data: Dict[str, Any]) -> Optional[User]:
        changes = UserUpdateSchema().load(data)
        return self._update_user(user_id, changes)

    # --- Post ---

    @abstractmethod
    def get_post(self, post_id: Any) -> Optional[Post]:
        """작성자 정보가 채워진 게시글 하나를 조회합니다."""

    @abstractmethod
    def get_all_posts(self) -> List[Post]:
        """작성자 정보가 채워진 전체 게시글 목록 (최신 순)."""

    @abstractmethod
    def get_posts_by_author(self, author_id: Any) -> List[Post]:
        """특정 사용자가 작성한 게시글 목록 (최신 순)."""

    def create_post(self, data: Dict[str, Any], author_id: Any) -> Post:
        payload = PostCreateSchema().load(data)
        return self._insert_post(payload, author_id)

    def update_post(self, post_id: Any, data: Dict[str, Any]) -> Optional[Post]:
        """전달된 필드를 수정하고 updated_at 을 항상 갱신합니다."""
        changes = PostUpdateSchema().load(data)
        return self._update_post(post_id, changes)

    @abstractmethod
    def delete_post(self, post_id: Any) -> bool:
        """게시글과 그 댓글을 모두 삭제합니다. 게시글이 없으면 False."""

    # --- Comment ---

    @abstractmethod
    def get_comment(self, comment_id: Any) -> Optional[Comment]:
        """작성자 정보가 채워진 댓글 하나를 조회합니다."""

    @abstractmethod
    def get_comments_by_post(self, post_id: Any) -> List[Comment]:
        """게시글의 모든 댓글 (작성 순)."""

    @abstractmethod
    def get_comment_replies(self, comment_id: Any) -> List[Comment]:
        """parent_id 가 comment_id 인 답글 목록 (작성 순)."""

    def create_comment(self, data: Dict[str, Any], author_id: Any) -> Comment:
        """
        댓글을 생성하고 게시글의 comment_count 를 같은 원자적 단위 안에서 1 증가시킵니다.
        게시글/작성자/부모 댓글이 유효하지 않으면 InvalidReferenceError.
        """
        payload = CommentCreateSchema().load(data)

        post_id = self.parse_key(payload['post_id'])
        if post_id is None:
            raise InvalidReferenceError(f"게시글 {payload['post_id']!r} 을(를) 찾을 수 없습니다.")
        payload['post_id'] = post_id

        if payload['parent_id'] is not None:
            parent_id = self.parse_key(payload['parent_id'])
            if parent_id is None:
                raise InvalidReferenceError(f"부모 댓글 {payload['parent_id']!r} 을(를) 찾을 수 없습니다.")
            payload['parent_id'] = parent_id

        return self._insert_comment(payload, author_id)

    def update_comment(self, comment_id: Any, data: Dict[str, Any]) -> Optional[Comment]:
        """content 가 기존 값과 달라질 때만 is_edited 를 True 로 설정합니다."""
        changes = CommentUpdateSchema().load(data)
        return self._update_comment(comment_id, changes)

    @abstractmethod
    def delete_comment(self, comment_id: Any) -> bool:
        """
        댓글을 삭제하고 comment_count 를 같은 원자적 단위 안에서 1 감소시킵니다.
        직계 답글은 최상위 댓글로 승격됩니다. 댓글이 없으면 카운터를 건드리지 않고 False.
        """

    # --- 백엔드 구현용 hook ---

    @abstractmethod
    def _insert_user(self, payload: Dict[str, Any]) -> User:
        ...

    @abstractmethod
    def _update_user(self, user_id: Any, changes: Dict[str, Any]) -> Optional[User]:
        ...

    @abstractmethod
    def _insert_post(self, payload: Dict[str, Any], author_id: Any) -> Post:
        ...

    @abstractmethod
    def _update_post(self, post_id: Any, changes: Dict[str, Any]) -> Optional[Post]:
        ...

    @abstractmethod
    def _insert_comment(self, payload: Dict[str, Any], author_id: Any) -> Comment:
        ...

    @abstractmethod
    def _update_comment(self, comment_id: Any, changes: Dict[str, Any]) -> Optional[Comment]:
        ...

    def _with_author(self, record, authors: Dict[Any, User]):
        """record 에 작성자를 채워 반환합니다. 작성자가 없으면 'Unknown' 작성자로 대체합니다."""
        author = authors.get(record.author_id) or unknown_author(self.UNKNOWN_AUTHOR_ID)
        return replace(record, author=author)

    def close(self):
        """백엔드가 가진 연결 등 자원을 정리합니다."""
