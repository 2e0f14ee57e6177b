"""Tests for authentication methods."""

import pytest

from pyneocities.auth import Auth


class TestAuth:
    def test_from_string_credentials(self):
        auth = Auth.from_string("username:password")
        assert auth.username == "username"
        assert auth.password == "password"
        assert not auth.is_api_key

    def test_from_string_api_key(self):
        auth = Auth.from_string("da77c3530c30593663bf7b797323e48c")
        assert auth.is_api_key
        assert auth.api_key == "da77c3530c30593663bf7b797323e48c"

    def test_password_may_contain_colons(self):
        auth = Auth.from_string("user:pa:ss")
        assert auth.username == "user"
        assert auth.password == "pa:ss"

    @pytest.mark.parametrize(
        "value, header",
        [
            ("username:password", "Basic dXNlcm5hbWU6cGFzc3dvcmQ="),
            ("api_key", "Bearer api_key"),
        ],
    )
    def test_header(self, value, header):
        assert Auth.from_string(value).header() == header

    @pytest.mark.parametrize("value", ["user:secret", "0123456789abcdef"])
    def test_to_string_round_trip(self, value):
        assert Auth.from_string(value).to_string() == value

    def test_repr_masks_password(self):
        text = repr(Auth.credentials("user", "hunter2"))
        assert "user" in text
        assert "hunter2" not in text

    def test_repr_masks_api_key(self):
        text = repr(Auth(api_key="da77c3530c30593663bf7b797323e48c"))
        assert "da77c3" in text
        assert "da77c3530c30593663bf7b797323e48c" not in text
