# ribbat/utils/datetime_utils.py
"""
저장소 계층 전체에서 일관된 시간 처리를 위한 유틸리티 모듈

- 모든 타임스탬프는 UTC timezone-aware datetime 으로 통일
- SQLite 처럼 timezone 정보를 잃어버리는 저장소에서 읽은 값도 UTC로 복원
- Firestore 저장/조회 시의 변환 규칙을 한 곳에서 관리
"""

from datetime import datetime, date, timezone, time
from typing import Any, Optional


class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
        """
        저장소에서 읽은 datetime을 UTC timezone-aware 값으로 정규화합니다.
        timezone-naive 값은 UTC로 기록된 것으로 간주합니다.
        """
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Firestore 저장을 위해 객체의 날짜/시간 필드를 변환

        변환 규칙:
        - date -> datetime (00:00:00 UTC)
        - timezone-naive datetime -> timezone-aware datetime (UTC)
        - dict/list 내부 재귀적 변환
        """
        if isinstance(obj, datetime):
            return DateTimeUtils.as_utc(obj)
        if isinstance(obj, date):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)
        if isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]
        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Firestore에서 읽은 데이터의 datetime 필드를 적절히 변환

        변환 규칙:
        - Firestore timestamp(DatetimeWithNanoseconds) -> 일반 UTC datetime (마이크로초 유지)
        - dict/list 내부 재귀적 변환
        """
        if isinstance(obj, datetime):
            utc = DateTimeUtils.as_utc(obj)
            return datetime(
                utc.year, utc.month, utc.day,
                utc.hour, utc.minute, utc.second, utc.microsecond,
                tzinfo=timezone.utc,
            )
        if isinstance(obj, dict):
            return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [DateTimeUtils.from_firestore(item) for item in obj]
        return obj
