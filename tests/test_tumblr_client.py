"""
Tests for the Tumblr client
"""

from unittest.mock import Mock

import pytest
import requests

from socials.base import AuthFailure, MediaFailure, PostFailure, SocialPost
from socials.tumblr_client import TUMBLR_API, TumblrClient, TumblrConfig
from socials.types import PostRef, ReplyRef


@pytest.fixture
def client():
    c = TumblrClient(
        TumblrConfig(
            consumer_key="ck",
            consumer_secret="cs",
            token="t",
            token_secret="ts",
            blog_identifier="example.tumblr.com",
        )
    )
    c.session = Mock()
    return c


def response(status_code=201, payload=None, text=""):
    resp = Mock(status_code=status_code, text=text)
    resp.json.return_value = payload or {}
    return resp


class TestBuildContent:
    """NPF payload construction"""

    def test_hashtags_become_tags(self):
        content, tags = TumblrClient.build_content("Great game #Devils #NHL", [])

        assert tags == ["Devils", "NHL"]
        assert content == [{"type": "text", "text": "Great game"}]

    def test_links_formatted(self):
        content, _ = TumblrClient.build_content("read https://example.com/a today", [])

        assert content[0]["formatting"] == [{"start": 5, "end": 26, "type": "link", "url": "https://example.com/a"}]

    def test_images_first(self):
        content, _ = TumblrClient.build_content("pics", ["https://pbs.twimg.com/media/a.png", "https://pbs.twimg.com/media/b"])

        assert content[0] == {
            "type": "image",
            "media": [
                {"type": "image/png", "url": "https://pbs.twimg.com/media/a.png"},
                {"type": "image/jpeg", "url": "https://pbs.twimg.com/media/b"},
            ],
        }
        assert content[1]["type"] == "text"


class TestTumblrPost:
    """createPost requests"""

    def test_post_payload(self, client):
        client.session.post.return_value = response(201, {"response": {"id_string": "12345"}})

        ref = client.post(SocialPost(text="hello #tag", media=["https://img/1.jpg"]))

        url = client.session.post.call_args.args[0]
        payload = client.session.post.call_args.kwargs["json"]
        assert url == f"{TUMBLR_API}/blog/example.tumblr.com/posts"
        assert payload["state"] == "published"
        assert payload["tags"] == "tag"
        assert payload["content"][0]["type"] == "image"
        assert ref.platform == "tumblr"
        assert ref.id == "12345"

    def test_reply_ignored(self, client):
        """Tumblr has no reply chains; every post stands alone"""
        client.session.post.return_value = response(201, {"response": {"id_string": "2"}})
        parent = PostRef(platform="tumblr", id="1")

        client.post(SocialPost(text="second"), reply=ReplyRef(root=parent, parent=parent))

        assert "parent" not in str(client.session.post.call_args)

    def test_http_error(self, client):
        client.session.post.return_value = response(400, text="bad request")

        with pytest.raises(PostFailure):
            client.post(SocialPost(text="x"))

    def test_network_error(self, client):
        client.session.post.side_effect = requests.ConnectionError("down")

        with pytest.raises(PostFailure):
            client.post(SocialPost(text="x"))

    def test_missing_id(self, client):
        client.session.post.return_value = response(201, {"response": {}})

        with pytest.raises(PostFailure):
            client.post(SocialPost(text="x"))


class TestTumblrLogin:
    def test_valid_credentials(self, client):
        client.session.get.return_value = response(200)
        client.login_or_restore()
        assert client.session.get.call_args.args[0] == f"{TUMBLR_API}/user/info"

    def test_rejected_credentials(self, client):
        client.session.get.return_value = response(401, text="unauthorized")

        with pytest.raises(AuthFailure):
            client.login_or_restore()

    def test_upload_not_supported(self, client):
        with pytest.raises(MediaFailure):
            client.upload_image(b"data")
