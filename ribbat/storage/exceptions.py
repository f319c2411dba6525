# ribbat/storage/exceptions.py
"""
저장소 계층에서 정의하는 예외.

조회/수정/삭제 대상이 없는 경우는 예외가 아니라 None/False 반환으로 표현합니다.
저장소 자체의 장애(연결 실패, 제약 조건 위반 등)는 드라이버 예외를 그대로 전파합니다.
"""


class StorageError(Exception):
    """저장소 계층 예외의 기반 클래스."""


class InvalidReferenceError(StorageError):
    """존재하지 않는 작성자/게시글/부모 댓글을 참조하거나, 다른 게시글의 댓글에 답글을 달려는 경우."""


class DuplicateUserError(StorageError):
    """이미 같은 uid 로 가입된 사용자가 있는 경우."""

    def __init__(self, uid: str):
        super().__init__(f"uid '{uid}' 사용자가 이미 존재합니다.")
        self.uid = uid
