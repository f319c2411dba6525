# ribbat/models/post.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from ribbat.models.user import User

@dataclass
class Post:
    """
    'posts' 테이블/컬렉션의 레코드 구조를 정의하는 데이터클래스.

    - comment_count: 비정규화된 댓글 수. 댓글 생성/삭제로만 변경됩니다.
    - author: 조회 시점에 author_id로 채워지는 작성자 정보이며 저장되지 않습니다.
    """
    id: Any
    title: str
    content: str
    author_id: Any
    created_at: datetime
    updated_at: datetime
    tags: List[str] = field(default_factory=list)
    comment_count: int = 0
    author: Optional[User] = None
