# ribbat/storage/__init__.py
"""
설정에 따라 저장소 백엔드 인스턴스를 하나 만들어 반환합니다.
"""

import logging
import os

from ribbat.storage.base import StorageBackend
from ribbat.storage.exceptions import DuplicateUserError, InvalidReferenceError, StorageError

SUPPORTED_BACKENDS = ('sql', 'firestore')


def get_storage(config) -> StorageBackend:
    """
    :param config: app.config 또는 같은 키를 가진 dict
    """
    backend = (config.get('STORAGE_BACKEND') or 'sql').lower()

    if backend == 'sql':
        from ribbat.storage.sql_storage import SqlStorage
        return SqlStorage(
            database_url=config.get('DATABASE_URL') or 'sqlite:///ribbat.db',
            echo=bool(config.get('SQL_ECHO', False)),
        )

    if backend == 'firestore':
        import firebase_admin
        from firebase_admin import credentials
        from ribbat.storage.firestore_storage import DEFAULT_IN_QUERY_LIMIT, FirestoreStorage

        if not firebase_admin._apps:
            cred_path = config.get('FIREBASE_CREDENTIALS_PATH')
            if cred_path:
                if not os.path.exists(cred_path):
                    raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
                firebase_admin.initialize_app(credentials.Certificate(cred_path))
            else:
                # GOOGLE_APPLICATION_CREDENTIALS 또는 에뮬레이터 환경의 기본 자격 증명 사용
                logging.warning("FIREBASE_CREDENTIALS_PATH 가 없어 기본 자격 증명으로 Firebase 를 초기화합니다.")
                firebase_admin.initialize_app()

        return FirestoreStorage(
            in_query_limit=int(config.get('FIRESTORE_IN_QUERY_LIMIT') or DEFAULT_IN_QUERY_LIMIT)
        )

    raise ValueError(
        f"지원하지 않는 STORAGE_BACKEND 입니다: {backend!r} (가능한 값: {', '.join(SUPPORTED_BACKENDS)})"
    )


__all__ = [
    'StorageBackend',
    'StorageError',
    'InvalidReferenceError',
    'DuplicateUserError',
    'get_storage',
]
