# ribbat/__init__.py

# --- 1. 환경 변수 로드 (가장 먼저 실행) ---
from dotenv import load_dotenv
load_dotenv()

# --- 2. 모듈 임포트 (Module Imports) ---
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

# - 설정
from ribbat.core.config import config_by_name

# - API 블루프린트
from ribbat.api.auth.routes import auth_bp
from ribbat.api.users.routes import users_bp
from ribbat.api.posts.routes import posts_bp
from ribbat.api.comments.routes import comments_bp

# - 저장소
from ribbat.storage import get_storage
from ribbat.storage.exceptions import DuplicateUserError, InvalidReferenceError


def create_app(config_name=None, storage=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: config_by_name 의 키. 없으면 FLASK_ENV 를 사용합니다.
    :param storage: 이미 만들어진 저장소 백엔드. 없으면 설정에 따라 새로 만듭니다.
    """
    # --- 3. Flask 앱 생성 및 기본 설정 ---
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    if not app.config.get('JWT_SECRET_KEY'):
        raise ValueError("필수 환경 변수가 설정되지 않았습니다: JWT_SECRET_KEY")

    # --- 4. 확장 기능 초기화 ---
    JWTManager(app)

    # --- 5. 저장소 인스턴스 생성 및 'app.services'에 저장 (의존성 주입) ---
    app.services = {}
    try:
        app.services['storage'] = storage if storage is not None else get_storage(app.config)
        logging.info(f"Storage backend initialized: {type(app.services['storage']).__name__}")
    except Exception as e:
        logging.error(f"Failed to initialize storage backend: {e}")
        raise

    # --- 6. 블루프린트 등록 ---
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(comments_bp, url_prefix='/api/comments')

    # --- 7. 전역 에러 핸들러 설정 ---
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(InvalidReferenceError)
    def handle_invalid_reference(err):
        response = {"error_code": "INVALID_REFERENCE", "message": str(err)}
        return jsonify(response), 400

    @app.errorhandler(DuplicateUserError)
    def handle_duplicate_user(err):
        response = {"error_code": "DUPLICATE_USER", "message": str(err)}
        return jsonify(response), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        response = {"error_code": err.name.upper().replace(' ', '_'), "message": err.description}
        return jsonify(response), err.code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # --- 8. 로깅 및 앱 반환 ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
