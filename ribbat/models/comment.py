# ribbat/models/comment.py
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ribbat.models.user import User

@dataclass
class Comment:
    """
    'comments' 테이블/컬렉션의 레코드 구조를 정의하는 데이터클래스.
    parent_id가 있으면 같은 게시글의 다른 댓글에 대한 답글입니다.
    element_id ~ selection_end 는 본문 중 어느 구간에 단 댓글인지를 나타냅니다.
    """
    id: Any
    content: str
    author_id: Any
    post_id: Any
    created_at: datetime
    updated_at: datetime
    is_edited: bool = False
    parent_id: Optional[Any] = None
    element_id: Optional[str] = None
    selected_text: Optional[str] = None
    selection_start: Optional[int] = None
    selection_end: Optional[int] = None
    author: Optional[User] = None
