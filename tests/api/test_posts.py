"""Tests for post, comment and like endpoints."""

from datetime import UTC, datetime, timedelta

from fastapi import status

from kiu_social.models import Comment, Post, PostLike


def _post(db_session, author, content, minutes_ago=0, is_public=True) -> Post:
    post = Post(
        author_id=author.id,
        content=content,
        images=[],
        is_public=is_public,
        created_at=datetime.now(UTC) - timedelta(minutes=minutes_ago),
    )
    db_session.add(post)
    db_session.commit()
    return post


def test_create_post(client, test_user, auth_token) -> None:
    response = client.post(
        "/api/posts",
        json={"content": "First day at KIU", "images": ["https://cdn.kiu.edu.ge/a.png"]},
        headers=auth_token,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["content"] == "First day at KIU"
    assert data["images"] == ["https://cdn.kiu.edu.ge/a.png"]
    assert data["isPublic"] is True
    assert data["author"]["id"] == test_user.id
    assert data["likesCount"] == 0
    assert data["commentsCount"] == 0
    assert data["isLiked"] is False


def test_create_post_length_bounds(client, auth_token) -> None:
    at_limit = client.post("/api/posts", json={"content": "x" * 2000}, headers=auth_token)
    over_limit = client.post("/api/posts", json={"content": "x" * 2001}, headers=auth_token)
    empty = client.post("/api/posts", json={"content": ""}, headers=auth_token)

    assert at_limit.status_code == status.HTTP_201_CREATED
    assert over_limit.status_code == status.HTTP_400_BAD_REQUEST
    assert empty.status_code == status.HTTP_400_BAD_REQUEST


def test_create_post_requires_token(client) -> None:
    response = client.post("/api/posts", json={"content": "anonymous"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_feed_lists_public_posts_newest_first(client, db_session, test_user, other_user,
                                              auth_token) -> None:
    older = _post(db_session, other_user, "older", minutes_ago=10)
    newer = _post(db_session, test_user, "newer", minutes_ago=1)
    _post(db_session, test_user, "private", is_public=False)

    response = client.get("/api/posts/feed", headers=auth_token)

    assert response.status_code == status.HTTP_200_OK
    assert [p["id"] for p in response.json()] == [newer.id, older.id]


def test_feed_pagination(client, db_session, test_user, auth_token) -> None:
    posts = [_post(db_session, test_user, f"post {i}", minutes_ago=i) for i in range(5)]

    page_two = client.get("/api/posts/feed", params={"page": 2, "limit": 2}, headers=auth_token)

    assert [p["id"] for p in page_two.json()] == [posts[2].id, posts[3].id]


def test_feed_includes_comment_preview_and_counts(client, db_session, test_user, other_user,
                                                  test_post, auth_token) -> None:
    base = datetime.now(UTC)
    for i in range(4):
        db_session.add(
            Comment(
                post_id=test_post.id,
                author_id=other_user.id,
                content=f"comment {i}",
                created_at=base + timedelta(seconds=i),
            )
        )
    db_session.add(PostLike(user_id=test_user.id, post_id=test_post.id))
    db_session.commit()

    feed = client.get("/api/posts/feed", headers=auth_token).json()

    assert len(feed) == 1
    post = feed[0]
    assert post["commentsCount"] == 4
    assert post["likesCount"] == 1
    assert post["isLiked"] is True
    assert [c["content"] for c in post["comments"]] == ["comment 3", "comment 2", "comment 1"]


def test_user_posts(client, db_session, test_user, other_user, auth_token) -> None:
    mine = _post(db_session, test_user, "mine")
    _post(db_session, other_user, "theirs")

    response = client.get(f"/api/posts/user/{test_user.id}", headers=auth_token)
    missing = client.get("/api/posts/user/nobody", headers=auth_token)

    assert [p["id"] for p in response.json()] == [mine.id]
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_toggle_post_like_twice_restores_state(client, test_post, auth_token, other_auth_token) -> None:
    first = client.post(f"/api/posts/{test_post.id}/like", headers=auth_token)
    other = client.post(f"/api/posts/{test_post.id}/like", headers=other_auth_token)
    second = client.post(f"/api/posts/{test_post.id}/like", headers=auth_token)

    assert first.json() == {"isLiked": True, "likesCount": 1}
    assert other.json() == {"isLiked": True, "likesCount": 2}
    assert second.json() == {"isLiked": False, "likesCount": 1}


def test_like_unknown_post_returns_404(client, auth_token) -> None:
    response = client.post("/api/posts/nope/like", headers=auth_token)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Post not found"


def test_add_comment_and_reply(client, test_post, auth_token, other_auth_token) -> None:
    top = client.post(
        f"/api/posts/{test_post.id}/comments",
        json={"content": "Welcome!"},
        headers=other_auth_token,
    )
    assert top.status_code == status.HTTP_201_CREATED
    top_id = top.json()["id"]

    reply = client.post(
        f"/api/posts/{test_post.id}/comments",
        json={"content": "Thanks", "parentCommentId": top_id},
        headers=auth_token,
    )
    assert reply.status_code == status.HTTP_201_CREATED
    assert reply.json()["parentCommentId"] == top_id

    listing = client.get(f"/api/posts/{test_post.id}/comments", headers=auth_token).json()
    assert [c["id"] for c in listing] == [top_id]
    assert [r["content"] for r in listing[0]["replies"]] == ["Thanks"]


def test_reply_to_reply_is_rejected(client, test_post, auth_token) -> None:
    top = client.post(f"/api/posts/{test_post.id}/comments", json={"content": "a"},
                      headers=auth_token).json()
    reply = client.post(
        f"/api/posts/{test_post.id}/comments",
        json={"content": "b", "parentCommentId": top["id"]},
        headers=auth_token,
    ).json()

    response = client.post(
        f"/api/posts/{test_post.id}/comments",
        json={"content": "c", "parentCommentId": reply["id"]},
        headers=auth_token,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_reply_with_parent_from_other_post(client, db_session, test_user, test_post,
                                           auth_token) -> None:
    other_post = _post(db_session, test_user, "other")
    parent = client.post(f"/api/posts/{other_post.id}/comments", json={"content": "a"},
                         headers=auth_token).json()

    response = client.post(
        f"/api/posts/{test_post.id}/comments",
        json={"content": "b", "parentCommentId": parent["id"]},
        headers=auth_token,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Parent comment belongs to a different post"


def test_comment_on_unknown_post(client, auth_token) -> None:
    create = client.post("/api/posts/nope/comments", json={"content": "a"}, headers=auth_token)
    listing = client.get("/api/posts/nope/comments", headers=auth_token)

    assert create.status_code == status.HTTP_404_NOT_FOUND
    assert listing.status_code == status.HTTP_404_NOT_FOUND


def test_comment_length_bounds(client, test_post, auth_token) -> None:
    ok = client.post(f"/api/posts/{test_post.id}/comments", json={"content": "x" * 1000},
                     headers=auth_token)
    too_long = client.post(f"/api/posts/{test_post.id}/comments", json={"content": "x" * 1001},
                           headers=auth_token)

    assert ok.status_code == status.HTTP_201_CREATED
    assert too_long.status_code == status.HTTP_400_BAD_REQUEST


def test_toggle_comment_like(client, test_post, auth_token) -> None:
    comment = client.post(f"/api/posts/{test_post.id}/comments", json={"content": "a"},
                          headers=auth_token).json()

    liked = client.post(f"/api/posts/comments/{comment['id']}/like", headers=auth_token)
    listing = client.get(f"/api/posts/{test_post.id}/comments", headers=auth_token).json()
    unliked = client.post(f"/api/posts/comments/{comment['id']}/like", headers=auth_token)

    assert liked.json() == {"isLiked": True, "likesCount": 1}
    assert listing[0]["likesCount"] == 1
    assert listing[0]["isLiked"] is True
    assert unliked.json() == {"isLiked": False, "likesCount": 0}


def test_like_unknown_comment_returns_404(client, auth_token) -> None:
    response = client.post("/api/posts/comments/nope/like", headers=auth_token)

    assert response.status_code == status.HTTP_404_NOT_FOUND
