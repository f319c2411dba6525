# ribbat/core/config.py

import os


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명에 사용하는 키
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    # 사용할 저장소 백엔드: 'sql' 또는 'firestore'. 프로세스 시작 시 한 번만 선택됩니다.
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'sql')

    # sql 백엔드 설정 (SQLAlchemy URL)
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///ribbat.db')
    SQL_ECHO = _env_flag('SQL_ECHO')

    # firestore 백엔드 설정
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')
    # Firestore `in` 쿼리 하나에 넣을 수 있는 최대 값 개수
    FIRESTORE_IN_QUERY_LIMIT = int(os.getenv('FIRESTORE_IN_QUERY_LIMIT', 30))


class DevelopmentConfig(Config):
    """개발 환경 설정. 코드 변경 시 자동 재시작, 상세 에러 페이지."""
    DEBUG = True


class TestingConfig(Config):
    """테스트 환경 설정. 매 앱마다 새 인메모리 SQLite DB 를 사용합니다."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = 'ribbat-testing-secret-key-0123456789'
    STORAGE_BACKEND = 'sql'
    DATABASE_URL = 'sqlite://'


class ProductionConfig(Config):
    DEBUG = False


# create_app 에서 FLASK_ENV 값에 따라 설정 클래스를 선택할 때 사용합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
