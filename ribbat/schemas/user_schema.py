# ribbat/schemas/user_schema.py
from marshmallow import Schema, fields, validate


class UserCreateSchema(Schema):
    """
    최초 로그인 시 사용자 생성 요청의 데이터 형식.
    id, createdAt 은 저장소가 채우므로 받지 않습니다.
    """
    uid = fields.Str(required=True, validate=validate.Length(min=1))
    display_name = fields.Str(required=True, data_key="displayName", validate=validate.Length(min=1))
    email = fields.Email(required=True)
    photo_url = fields.Str(data_key="photoURL", allow_none=True, load_default=None)


class UserUpdateSchema(Schema):
    """프로필 수정 요청. 전달된 필드만 변경됩니다. (uid는 변경 불가)"""
    display_name = fields.Str(data_key="displayName", validate=validate.Length(min=1))
    email = fields.Email()
    photo_url = fields.Str(data_key="photoURL", allow_none=True)


class UserResponseSchema(Schema):
    """User 데이터의 직렬화를 위한 스키마"""
    id = fields.Raw(dump_only=True)
    uid = fields.Str(dump_only=True)
    display_name = fields.Str(dump_only=True, data_key="displayName")
    email = fields.Str(dump_only=True)
    photo_url = fields.Str(dump_only=True, data_key="photoURL", allow_none=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt", allow_none=True)


class LoginSchema(Schema):
    """
    로그인 요청. 클라이언트가 외부 인증을 마친 뒤 받은 프로필을 그대로 전달합니다.
    displayName/photoURL 이 비어 있으면 가입 시 기본값으로 채웁니다.
    """
    uid = fields.Str(required=True, validate=validate.Length(min=1))
    email = fields.Email(required=True)
    display_name = fields.Str(data_key="displayName", allow_none=True, load_default=None)
    photo_url = fields.Str(data_key="photoURL", allow_none=True, load_default=None)
