# ribbat/api/comments/routes.py
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from ribbat.schemas.comment_schema import CommentResponseSchema

comments_bp = Blueprint('comments_bp', __name__)


def _comment_not_found():
    return jsonify({"error_code": "COMMENT_NOT_FOUND", "message": "댓글을 찾을 수 없습니다."}), 404


@comments_bp.route('/<string:comment_id>', methods=['GET'])
def get_comment(comment_id: str):
    storage = current_app.services['storage']
    comment = storage.get_comment(comment_id)
    if not comment:
        return _comment_not_found()
    return jsonify(CommentResponseSchema().dump(comment)), 200


@comments_bp.route('/<string:comment_id>/replies', methods=['GET'])
def get_comment_replies(comment_id: str):
    """특정 댓글의 답글 목록 (작성 순)."""
    storage = current_app.services['storage']
    if not storage.get_comment(comment_id):
        return _comment_not_found()
    replies = storage.get_comment_replies(comment_id)
    return jsonify(CommentResponseSchema(many=True).dump(replies)), 200


@comments_bp.route('/<string:comment_id>', methods=['PATCH'])
@jwt_required()
def update_comment(comment_id: str):
    """
    댓글을 수정합니다. (작성자 본인만 가능)
    - 내용이 실제로 바뀐 경우에만 isEdited 가 true 가 됩니다.
    """
    storage = current_app.services['storage']
    comment = storage.get_comment(comment_id)
    if not comment:
        return _comment_not_found()
    if str(comment.author_id) != get_jwt_identity():
        return jsonify({"error_code": "FORBIDDEN", "message": "댓글 작성자만 수정할 수 있습니다."}), 403

    updated_comment = storage.update_comment(comment_id, request.get_json(silent=True) or {})
    if not updated_comment:
        return _comment_not_found()
    return jsonify(CommentResponseSchema().dump(updated_comment)), 200


@comments_bp.route('/<string:comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(comment_id: str):
    """
    댓글을 삭제합니다. (작성자 본인만 가능)
    - 성공 시 게시글의 댓글 수가 1 감소하고, 직계 답글은 최상위 댓글이 됩니다.
    """
    storage = current_app.services['storage']
    comment = storage.get_comment(comment_id)
    if not comment:
        return _comment_not_found()
    if str(comment.author_id) != get_jwt_identity():
        return jsonify({"error_code": "FORBIDDEN", "message": "댓글 작성자만 삭제할 수 있습니다."}), 403

    if not storage.delete_comment(comment_id):
        return _comment_not_found()
    return Response(status=204)
