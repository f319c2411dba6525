# ribbat/models/user.py
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

@dataclass
class User:
    """
    'users' 테이블/컬렉션의 레코드 구조를 정의하는 데이터클래스.
    id의 타입(int 또는 str)은 저장소 백엔드가 결정합니다.
    """
    id: Any
    uid: str  # 외부 인증 제공자(Firebase)의 고유 ID, 전체 사용자 중 유일
    display_name: str
    email: str
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None


def unknown_author(sentinel_id: Any) -> User:
    """작성자 레코드를 찾지 못했을 때 응답에 채워 넣는 대체 작성자."""
    return User(
        id=sentinel_id,
        uid='unknown',
        display_name='Unknown',
        email='',
        photo_url='',
    )
