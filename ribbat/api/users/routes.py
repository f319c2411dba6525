# ribbat/api/users/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from ribbat.schemas.user_schema import UserResponseSchema
from ribbat.schemas.post_schema import PostResponseSchema

users_bp = Blueprint('users_bp', __name__)


@users_bp.route('', methods=['GET'])
def list_users():
    """전체 사용자 목록 (최신 가입 순)."""
    storage = current_app.services['storage']
    return jsonify(UserResponseSchema(many=True).dump(storage.get_all_users())), 200


@users_bp.route('/me', methods=['PATCH'])
@jwt_required()
def update_me():
    """
    현재 로그인된 사용자의 프로필(displayName, email, photoURL)을 수정합니다.
    """
    storage = current_app.services['storage']
    user_id = get_jwt_identity()
    updated_user = storage.update_user(user_id, request.get_json(silent=True) or {})
    if not updated_user:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    return jsonify(UserResponseSchema().dump(updated_user)), 200


@users_bp.route('/<string:user_id>', methods=['GET'])
def get_user(user_id: str):
    storage = current_app.services['storage']
    user = storage.get_user(user_id)
    if not user:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    return jsonify(UserResponseSchema().dump(user)), 200


@users_bp.route('/<string:user_id>/posts', methods=['GET'])
def get_user_posts(user_id: str):
    """특정 사용자가 작성한 게시글 목록. 사용자가 없으면 404."""
    storage = current_app.services['storage']
    if not storage.get_user(user_id):
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404
    posts = storage.get_posts_by_author(user_id)
    return jsonify(PostResponseSchema(many=True).dump(posts)), 200
