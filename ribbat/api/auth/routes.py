# ribbat/api/auth/routes.py

import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity

from ribbat.schemas.user_schema import LoginSchema, UserResponseSchema
from ribbat.storage.exceptions import DuplicateUserError

auth_bp = Blueprint('auth_bp', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    외부 인증(uid) 기준으로 로그인합니다. 처음 보는 uid 이면 사용자를 생성합니다.
    - 응답에 Access Token 과 사용자 정보를 담아 반환합니다.
    - 클라이언트가 보낸 uid 를 검증 없이 신뢰하므로 신뢰할 수 있는 프론트엔드나 개발 환경에서만 사용해야 합니다.
    """
    storage = current_app.services['storage']
    profile = LoginSchema().load(request.get_json(silent=True) or {})

    user = storage.get_user_by_external_id(profile['uid'])
    is_new_user = user is None
    if is_new_user:
        try:
            user = storage.create_user({
                'uid': profile['uid'],
                'displayName': profile['display_name'] or 'Anonymous',
                'email': profile['email'],
                'photoURL': profile['photo_url'] or '',
            })
        except DuplicateUserError:
            # 동시에 들어온 같은 uid 의 로그인 요청이 먼저 사용자를 만든 경우
            user = storage.get_user_by_external_id(profile['uid'])
            is_new_user = False
            if user is None:
                raise
        logging.info(f"신규 사용자 가입 (user_id: {user.id})")

    access_token = create_access_token(identity=str(user.id))
    return jsonify({
        "access_token": access_token,
        "is_new_user": is_new_user,
        "user": UserResponseSchema().dump(user)
    }), 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    """현재 토큰의 사용자 정보를 반환합니다."""
    storage = current_app.services['storage']
    user = storage.get_user(get_jwt_identity())
    if not user:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    return jsonify(UserResponseSchema().dump(user)), 200
