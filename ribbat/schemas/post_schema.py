# ribbat/schemas/post_schema.py
from marshmallow import Schema, fields, validate

from ribbat.schemas.user_schema import UserResponseSchema


class PostCreateSchema(Schema):
    """
    게시글 생성 요청의 유효성을 검사합니다.
    authorId 는 인증된 사용자로부터 결정되므로 본문에서 받지 않습니다.
    """
    title = fields.Str(required=True, validate=validate.Length(min=1))
    content = fields.Str(required=True)
    tags = fields.List(fields.Str(), load_default=list)


class PostUpdateSchema(Schema):
    """
    게시글 수정 요청. 전달된 필드만 변경됩니다.
    commentCount 같은 서버 관리 필드는 알 수 없는 필드로 거부됩니다.
    """
    title = fields.Str(validate=validate.Length(min=1))
    content = fields.Str()
    tags = fields.List(fields.Str())


class PostResponseSchema(Schema):
    """게시글 정보 응답을 위한 최종 JSON 형식을 정의합니다."""
    id = fields.Raw(dump_only=True)
    title = fields.Str(dump_only=True)
    content = fields.Str(dump_only=True)
    author_id = fields.Raw(dump_only=True, data_key="authorId")
    author = fields.Nested(UserResponseSchema, dump_only=True)
    tags = fields.List(fields.Str(), dump_only=True)
    comment_count = fields.Int(dump_only=True, data_key="commentCount")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")
