# ribbat/schemas/comment_schema.py
from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from ribbat.schemas.fields import KeyField
from ribbat.schemas.user_schema import UserResponseSchema


class _SelectionAnchorSchema(Schema):
    """본문 중 댓글이 달린 구간(앵커) 정보를 검사합니다."""

    @validates_schema
    def validate_selection_range(self, data, **kwargs):
        start = data.get("selection_start")
        end = data.get("selection_end")
        if start is not None and end is not None and end < start:
            raise ValidationError(
                "selectionEnd 는 selectionStart 보다 작을 수 없습니다.", "selectionEnd"
            )


class CommentCreateSchema(_SelectionAnchorSchema):
    """
    댓글 생성 요청의 데이터 형식을 정의하고 유효성을 검사합니다.
    parentId 가 있으면 해당 댓글에 대한 답글이 됩니다.
    """
    content = fields.Str(required=True, validate=validate.Length(min=1))
    post_id = KeyField(required=True, data_key="postId")
    parent_id = KeyField(data_key="parentId", allow_none=True, load_default=None)
    element_id = fields.Str(data_key="elementId", allow_none=True, load_default=None)
    selected_text = fields.Str(data_key="selectedText", allow_none=True, load_default=None)
    selection_start = fields.Int(
        data_key="selectionStart", strict=True, allow_none=True, load_default=None,
        validate=validate.Range(min=0),
    )
    selection_end = fields.Int(
        data_key="selectionEnd", strict=True, allow_none=True, load_default=None,
        validate=validate.Range(min=0),
    )


class CommentUpdateSchema(_SelectionAnchorSchema):
    """댓글 수정 요청. 게시글/부모 댓글은 바꿀 수 없습니다."""
    content = fields.Str(validate=validate.Length(min=1))
    element_id = fields.Str(data_key="elementId", allow_none=True)
    selected_text = fields.Str(data_key="selectedText", allow_none=True)
    selection_start = fields.Int(
        data_key="selectionStart", strict=True, allow_none=True, validate=validate.Range(min=0)
    )
    selection_end = fields.Int(
        data_key="selectionEnd", strict=True, allow_none=True, validate=validate.Range(min=0)
    )


class CommentResponseSchema(Schema):
    """댓글 정보 응답을 위한 최종 JSON 형식을 정의합니다."""
    id = fields.Raw(dump_only=True)
    content = fields.Str(dump_only=True)
    author_id = fields.Raw(dump_only=True, data_key="authorId")
    post_id = fields.Raw(dump_only=True, data_key="postId")
    parent_id = fields.Raw(dump_only=True, data_key="parentId", allow_none=True)
    author = fields.Nested(UserResponseSchema, dump_only=True)
    is_edited = fields.Bool(dump_only=True, data_key="isEdited")
    element_id = fields.Str(dump_only=True, data_key="elementId", allow_none=True)
    selected_text = fields.Str(dump_only=True, data_key="selectedText", allow_none=True)
    selection_start = fields.Int(dump_only=True, data_key="selectionStart", allow_none=True)
    selection_end = fields.Int(dump_only=True, data_key="selectionEnd", allow_none=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")
