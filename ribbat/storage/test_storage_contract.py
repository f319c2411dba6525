# ribbat/storage/test_storage_contract.py
"""
두 저장소 백엔드(sql, firestore)가 같은 동작을 하는지 확인하는 공통 테스트.
`storage` fixture 는 conftest.py 에서 두 백엔드로 parametrize 됩니다.
"""

import dataclasses

import pytest
from marshmallow import ValidationError
from sqlalchemy import delete

from ribbat.storage.exceptions import DuplicateUserError, InvalidReferenceError
from ribbat.storage.sql_models import UserRow
from ribbat.storage.sql_storage import SqlStorage


def make_user(storage, uid='u1', name='Alice'):
    return storage.create_user({
        'uid': uid,
        'displayName': name,
        'email': f'{uid}@example.com',
    })


def make_post(storage, author, **overrides):
    data = {'title': 'Hello', 'content': '<p>first post</p>', 'tags': ['intro']}
    data.update(overrides)
    return storage.create_post(data, author.id)


def make_comment(storage, author, post, **overrides):
    data = {'content': 'nice post', 'postId': post.id}
    data.update(overrides)
    return storage.create_comment(data, author.id)


def missing_key(storage):
    return 987654 if isinstance(storage, SqlStorage) else 'missing-doc'


def drop_user(storage, user_id):
    """작성자 레코드가 사라진 상황을 만들기 위해 저장소에서 직접 사용자를 지웁니다."""
    if isinstance(storage, SqlStorage):
        with storage.engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            conn.execute(delete(UserRow).where(UserRow.id == user_id))
            conn.commit()
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    else:
        storage.db.store['users'].pop(user_id)


def comment_count(storage, post):
    return storage.get_post(post.id).comment_count


# --- comment_count 일관성 ---

def test_comment_count_follows_create_and_delete(storage):
    u1 = make_user(storage)
    p1 = make_post(storage, u1)
    c1 = make_comment(storage, u1, p1)

    assert comment_count(storage, p1) == 1

    assert storage.delete_comment(c1.id) is True
    assert comment_count(storage, p1) == 0

    assert storage.delete_comment(c1.id) is False
    assert comment_count(storage, p1) == 0


def test_delete_missing_comment_keeps_count(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    make_comment(storage, author, post)

    assert storage.delete_comment(missing_key(storage)) is False
    assert comment_count(storage, post) == 1


def test_comment_count_matches_live_comments(storage):
    author = make_user(storage)
    other = make_user(storage, uid='u2', name='Bob')
    post = make_post(storage, author)
    other_post = make_post(storage, other, title='Other')

    first = make_comment(storage, author, post)
    reply = make_comment(storage, other, post, parentId=first.id)
    make_comment(storage, other, post, parentId=reply.id)
    make_comment(storage, author, post)
    make_comment(storage, author, other_post)

    storage.delete_comment(first.id)
    storage.delete_comment(reply.id)

    for target in (post, other_post):
        live = storage.get_comments_by_post(target.id)
        assert comment_count(storage, target) == len(live)
    assert comment_count(storage, post) == 2
    assert comment_count(storage, other_post) == 1


# --- 참조 검증 ---

def test_reply_to_comment_on_other_post_is_rejected(storage):
    author = make_user(storage)
    post_a = make_post(storage, author, title='A')
    post_b = make_post(storage, author, title='B')
    comment_on_a = make_comment(storage, author, post_a)

    with pytest.raises(InvalidReferenceError):
        make_comment(storage, author, post_b, parentId=comment_on_a.id)

    assert comment_count(storage, post_a) == 1
    assert comment_count(storage, post_b) == 0
    assert storage.get_comments_by_post(post_b.id) == []


def test_comment_with_missing_references_is_rejected(storage):
    author = make_user(storage)
    post = make_post(storage, author)

    with pytest.raises(InvalidReferenceError):
        storage.create_comment({'content': 'x', 'postId': missing_key(storage)}, author.id)
    with pytest.raises(InvalidReferenceError):
        make_comment(storage, author, post, parentId=missing_key(storage))
    with pytest.raises(InvalidReferenceError):
        storage.create_comment({'content': 'x', 'postId': post.id}, missing_key(storage))

    assert comment_count(storage, post) == 0


def test_post_with_missing_author_is_rejected(storage):
    with pytest.raises(InvalidReferenceError):
        storage.create_post({'title': 't', 'content': 'c'}, missing_key(storage))
    assert storage.get_all_posts() == []


def test_invalid_comment_payload_never_reaches_store(storage):
    author = make_user(storage)
    post = make_post(storage, author)

    with pytest.raises(ValidationError):
        make_comment(storage, author, post, content='')
    with pytest.raises(ValidationError):
        make_comment(storage, author, post, selectionStart=10, selectionEnd=2)

    assert comment_count(storage, post) == 0


# --- 작성자 정보 채우기 ---

def test_records_fall_back_to_unknown_author(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    make_comment(storage, author, post)
    drop_user(storage, author.id)

    fetched = [
        *storage.get_all_posts(),
        *storage.get_posts_by_author(author.id),
        storage.get_post(post.id),
        *storage.get_comments_by_post(post.id),
    ]
    assert len(fetched) == 4
    for record in fetched:
        assert record.author is not None
        assert record.author.id == storage.UNKNOWN_AUTHOR_ID
        assert record.author.display_name == 'Unknown'
        assert record.author.uid == 'unknown'
        assert record.author_id == author.id


def test_list_results_carry_each_author(storage):
    alice = make_user(storage, uid='alice', name='Alice')
    bob = make_user(storage, uid='bob', name='Bob')
    make_post(storage, alice, title='from alice')
    make_post(storage, bob, title='from bob')

    names = {post.title: post.author.display_name for post in storage.get_all_posts()}
    assert names == {'from alice': 'Alice', 'from bob': 'Bob'}


# --- 댓글 수정 ---

def test_updating_content_sets_is_edited(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    comment = make_comment(storage, author, post)
    assert comment.is_edited is False

    updated = storage.update_comment(comment.id, {'content': 'changed'})

    assert updated.is_edited is True
    assert updated.content == 'changed'
    assert storage.get_comment(comment.id).is_edited is True


def test_updating_non_content_fields_keeps_is_edited(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    comment = make_comment(storage, author, post)

    updated = storage.update_comment(comment.id, {'elementId': 'p-3', 'selectedText': 'word'})
    assert updated.is_edited is False
    assert updated.element_id == 'p-3'

    same_content = storage.update_comment(comment.id, {'content': comment.content})
    assert same_content.is_edited is False

    storage.update_comment(comment.id, {'content': 'edited'})
    after_anchor_change = storage.update_comment(comment.id, {'selectionStart': 1, 'selectionEnd': 4})
    assert after_anchor_change.is_edited is True


def test_update_missing_comment_returns_none(storage):
    assert storage.update_comment(missing_key(storage), {'content': 'x'}) is None


# --- 게시글 ---

def test_create_post_round_trip(storage):
    author = make_user(storage)
    created = make_post(storage, author, tags=['a', 'b'])

    fetched = storage.get_post(created.id)

    assert dataclasses.replace(fetched, updated_at=created.updated_at) == created
    assert fetched.comment_count == 0
    assert fetched.tags == ['a', 'b']
    assert fetched.author.uid == author.uid


def test_update_post_refreshes_updated_at(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    make_comment(storage, author, post)

    updated = storage.update_post(post.id, {'title': 'Renamed', 'tags': []})

    assert updated.title == 'Renamed'
    assert updated.tags == []
    assert updated.content == post.content
    assert updated.updated_at >= post.updated_at
    assert updated.created_at == post.created_at
    assert updated.comment_count == 1
    assert updated.author.display_name == author.display_name


def test_update_post_cannot_touch_comment_count(storage):
    author = make_user(storage)
    post = make_post(storage, author)

    with pytest.raises(ValidationError):
        storage.update_post(post.id, {'commentCount': 99})
    assert comment_count(storage, post) == 0


def test_update_missing_post_returns_none(storage):
    assert storage.update_post(missing_key(storage), {'title': 'x'}) is None


def test_posts_are_newest_first(storage):
    alice = make_user(storage, uid='alice')
    bob = make_user(storage, uid='bob')
    first = make_post(storage, alice, title='first')
    second = make_post(storage, bob, title='second')
    third = make_post(storage, alice, title='third')

    assert [p.id for p in storage.get_all_posts()] == [third.id, second.id, first.id]
    assert [p.id for p in storage.get_posts_by_author(alice.id)] == [third.id, first.id]
    assert storage.get_posts_by_author(missing_key(storage)) == []


def test_delete_post_removes_its_comments(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    other_post = make_post(storage, author, title='keep')
    root = make_comment(storage, author, post)
    reply = make_comment(storage, author, post, parentId=root.id)
    kept = make_comment(storage, author, other_post)

    assert storage.delete_post(post.id) is True

    assert storage.get_post(post.id) is None
    assert storage.get_comment(root.id) is None
    assert storage.get_comment(reply.id) is None
    assert storage.get_comment(kept.id) is not None
    assert storage.delete_post(post.id) is False


# --- 댓글 조회 ---

def test_comments_are_chronological_with_replies(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    first = make_comment(storage, author, post, content='first')
    second = make_comment(storage, author, post, content='second')
    reply_one = make_comment(storage, author, post, content='r1', parentId=first.id)
    reply_two = make_comment(storage, author, post, content='r2', parentId=first.id)

    all_comments = storage.get_comments_by_post(post.id)
    assert [c.id for c in all_comments] == [first.id, second.id, reply_one.id, reply_two.id]
    assert all(c.author.display_name == 'Alice' for c in all_comments)

    replies = storage.get_comment_replies(first.id)
    assert [c.id for c in replies] == [reply_one.id, reply_two.id]
    assert all(c.parent_id == first.id for c in replies)
    assert storage.get_comment_replies(second.id) == []


def test_comment_keeps_selection_anchor(storage):
    author = make_user(storage)
    post = make_post(storage, author)

    comment = make_comment(
        storage, author, post,
        elementId='para-2', selectedText='quick brown', selectionStart=4, selectionEnd=15,
    )
    fetched = storage.get_comment(comment.id)

    assert fetched.element_id == 'para-2'
    assert fetched.selected_text == 'quick brown'
    assert (fetched.selection_start, fetched.selection_end) == (4, 15)
    assert fetched.post_id == post.id
    assert fetched.parent_id is None


def test_delete_comment_promotes_direct_replies(storage):
    author = make_user(storage)
    post = make_post(storage, author)
    root = make_comment(storage, author, post)
    reply = make_comment(storage, author, post, parentId=root.id)
    nested = make_comment(storage, author, post, parentId=reply.id)

    assert storage.delete_comment(root.id) is True

    assert storage.get_comment(reply.id).parent_id is None
    assert storage.get_comment(nested.id).parent_id == reply.id
    assert comment_count(storage, post) == 2


# --- 사용자 ---

def test_user_lookup_and_update(storage):
    user = make_user(storage, uid='firebase-uid-1', name='Alice')

    assert storage.get_user(user.id) == user
    assert storage.get_user_by_external_id('firebase-uid-1') == user
    assert storage.get_user_by_external_id('nobody') is None
    assert storage.get_user(missing_key(storage)) is None

    updated = storage.update_user(user.id, {'displayName': 'Alice Kim', 'photoURL': 'https://x/y.png'})
    assert updated.display_name == 'Alice Kim'
    assert updated.photo_url == 'https://x/y.png'
    assert updated.uid == 'firebase-uid-1'
    assert storage.update_user(missing_key(storage), {'displayName': 'x'}) is None


def test_user_uid_cannot_be_changed(storage):
    user = make_user(storage)
    with pytest.raises(ValidationError):
        storage.update_user(user.id, {'uid': 'other'})


def test_duplicate_uid_is_rejected(storage):
    make_user(storage, uid='same')
    with pytest.raises(DuplicateUserError):
        make_user(storage, uid='same', name='Again')
    assert len(storage.get_all_users()) == 1


def test_all_users_newest_first(storage):
    first = make_user(storage, uid='a')
    second = make_user(storage, uid='b')
    assert [u.id for u in storage.get_all_users()] == [second.id, first.id]


@pytest.mark.parametrize('raw', [None, '', '   ', 'a/b', True, 3.5, [], {}])
def test_unusable_ids_are_treated_as_missing(storage, raw):
    assert storage.parse_key(raw) is None
    assert storage.get_post(raw) is None
    assert storage.get_comment(raw) is None
    assert storage.delete_comment(raw) is False
    assert storage.delete_post(raw) is False
