"""Service-level tests for the social graph, likes and messaging."""

import pytest

from kiu_social.models import Block, Friendship, PostLike
from kiu_social.schemas.message import MessageCreate
from kiu_social.services import likes, message_service, social_graph
from kiu_social.services.errors import ConflictError, NotFoundError, PolicyError


def test_add_then_block_leaves_no_friendship(db_session, test_user, other_user) -> None:
    social_graph.add_friend(db_session, test_user, other_user.id)
    assert social_graph.are_friends(db_session, other_user.id, test_user.id)

    social_graph.block_user(db_session, other_user, test_user.id)

    assert not social_graph.are_friends(db_session, test_user.id, other_user.id)
    assert db_session.query(Friendship).count() == 0
    assert db_session.query(Block).count() == 1


def test_add_friend_conflict_keeps_two_rows(db_session, test_user, other_user) -> None:
    social_graph.add_friend(db_session, test_user, other_user.id)

    with pytest.raises(ConflictError):
        social_graph.add_friend(db_session, other_user, test_user.id)

    assert db_session.query(Friendship).count() == 2


def test_list_friends_ordered_by_name(db_session, test_user, other_user, third_user) -> None:
    social_graph.add_friend(db_session, test_user, other_user.id)
    social_graph.add_friend(db_session, test_user, third_user.id)

    names = [u.first_name for u in social_graph.list_friends(db_session, test_user.id)]

    assert names == ["Ana", "Giorgi"]


def test_like_toggle_twice_restores_count(db_session, test_user, other_user, test_post) -> None:
    assert likes.toggle_post_like(db_session, other_user.id, test_post.id) == (True, 1)
    assert likes.toggle_post_like(db_session, test_user.id, test_post.id) == (True, 2)
    assert likes.toggle_post_like(db_session, other_user.id, test_post.id) == (False, 1)
    assert db_session.query(PostLike).filter_by(user_id=test_user.id).count() == 1


def test_like_insert_collision_reads_as_liked(db_session, mocker, test_user, test_post) -> None:
    # Simulate a concurrent toggle that inserted the row between our delete and insert.
    db_session.execute(PostLike.__table__.insert().values(user_id=test_user.id, post_id=test_post.id))
    db_session.commit()
    result = mocker.MagicMock(rowcount=0)
    real_execute = db_session.execute

    def execute(statement, *args, **kwargs):
        if getattr(statement, "is_delete", False):
            return result
        return real_execute(statement, *args, **kwargs)

    mocker.patch.object(db_session, "execute", side_effect=execute)

    assert likes.toggle_post_like(db_session, test_user.id, test_post.id) == (True, 1)


def test_toggle_like_unknown_targets(db_session, test_user) -> None:
    with pytest.raises(NotFoundError):
        likes.toggle_post_like(db_session, test_user.id, "missing")
    with pytest.raises(NotFoundError):
        likes.toggle_comment_like(db_session, test_user.id, "missing")


def test_send_message_checks_blocks_in_both_directions(db_session, test_user, other_user) -> None:
    social_graph.block_user(db_session, test_user, other_user.id)
    payload = MessageCreate(recipient_id=other_user.id, content="hey")
    reverse = MessageCreate(recipient_id=test_user.id, content="hey")

    with pytest.raises(PolicyError):
        message_service.send_message(db_session, test_user.id, payload)
    with pytest.raises(PolicyError):
        message_service.send_message(db_session, other_user.id, reverse)


def test_message_type_is_case_insensitive(db_session, test_user, other_user) -> None:
    payload = MessageCreate.model_validate(
        {"recipientId": other_user.id, "content": "pic", "messageType": "image"}
    )

    message = message_service.send_message(db_session, test_user.id, payload)

    assert message.message_type == "IMAGE"
    assert message_service.serialize_message(message).sender.id == test_user.id
