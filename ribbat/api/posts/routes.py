# ribbat/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from ribbat.schemas.post_schema import PostResponseSchema
from ribbat.schemas.comment_schema import CommentResponseSchema

posts_bp = Blueprint('posts_bp', __name__)


def _post_not_found():
    return jsonify({"error_code": "POST_NOT_FOUND", "message": "게시글을 찾을 수 없습니다."}), 404


def _forbidden():
    return jsonify({"error_code": "FORBIDDEN", "message": "게시글 작성자만 수정/삭제할 수 있습니다."}), 403


@posts_bp.route('', methods=['GET'])
def list_posts():
    """전체 게시글 목록 (최신 순, 작성자 정보 포함)."""
    storage = current_app.services['storage']
    return jsonify(PostResponseSchema(many=True).dump(storage.get_all_posts())), 200


@posts_bp.route('', methods=['POST'])
@jwt_required()
def create_post():
    """
    새 게시글을 작성합니다. 작성자는 토큰의 사용자입니다.
    - 성공 시 생성된 게시글을 201 Created 와 함께 반환합니다.
    """
    storage = current_app.services['storage']
    user_id = get_jwt_identity()
    new_post = storage.create_post(request.get_json(silent=True) or {}, user_id)
    logging.info(f"게시글 작성 (post_id: {new_post.id}, user_id: {user_id})")
    return jsonify(PostResponseSchema().dump(new_post)), 201


@posts_bp.route('/<string:post_id>', methods=['GET'])
def get_post(post_id: str):
    storage = current_app.services['storage']
    post = storage.get_post(post_id)
    if not post:
        return _post_not_found()
    return jsonify(PostResponseSchema().dump(post)), 200


@posts_bp.route('/<string:post_id>', methods=['PATCH'])
@jwt_required()
def update_post(post_id: str):
    """게시글을 수정합니다. (작성자 본인만 가능)"""
    storage = current_app.services['storage']
    post = storage.get_post(post_id)
    if not post:
        return _post_not_found()
    if str(post.author_id) != get_jwt_identity():
        return _forbidden()

    updated_post = storage.update_post(post_id, request.get_json(silent=True) or {})
    if not updated_post:
        return _post_not_found()
    return jsonify(PostResponseSchema().dump(updated_post)), 200


@posts_bp.route('/<string:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id: str):
    """
    게시글을 삭제합니다. (작성자 본인만 가능)
    - 게시글에 달린 댓글도 함께 삭제됩니다.
    """
    storage = current_app.services['storage']
    post = storage.get_post(post_id)
    if not post:
        return _post_not_found()
    if str(post.author_id) != get_jwt_identity():
        return _forbidden()

    if not storage.delete_post(post_id):
        return _post_not_found()
    return Response(status=204)


@posts_bp.route('/<string:post_id>/comments', methods=['GET'])
def get_post_comments(post_id: str):
    """게시글의 모든 댓글 (작성 순). 답글은 parentId 로 구분합니다."""
    storage = current_app.services['storage']
    if not storage.get_post(post_id):
        return _post_not_found()
    comments = storage.get_comments_by_post(post_id)
    return jsonify(CommentResponseSchema(many=True).dump(comments)), 200


@posts_bp.route('/<string:post_id>/comments', methods=['POST'])
@jwt_required()
def create_post_comment(post_id: str):
    """
    게시글에 댓글(또는 parentId 가 있으면 답글)을 작성합니다.
    - 성공 시 게시글의 댓글 수가 1 증가합니다.
    """
    storage = current_app.services['storage']
    user_id = get_jwt_identity()
    if not storage.get_post(post_id):
        return _post_not_found()

    data = {**(request.get_json(silent=True) or {}), 'postId': post_id}
    new_comment = storage.create_comment(data, user_id)
    return jsonify(CommentResponseSchema().dump(new_comment)), 201
