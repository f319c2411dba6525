# ribbat/schemas/fields.py
from marshmallow import fields


class KeyField(fields.Field):
    """
    엔티티 식별자 필드.
    관계형 저장소는 정수, 문서 저장소는 문자열 ID를 사용하므로 스키마는 두 형태를 모두 허용하고
    실제 타입 변환은 각 저장소의 parse_key 가 담당합니다.
    """
    default_error_messages = {
        "invalid": "정수 또는 비어있지 않은 문자열 형태의 식별자여야 합니다.",
    }

    def _deserialize(self, value, attr, data, **kwargs):
        # bool은 int의 하위 타입이므로 먼저 걸러냅니다.
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise self.make_error("invalid")
        if isinstance(value, str) and not value.strip():
            raise self.make_error("invalid")
        return value
