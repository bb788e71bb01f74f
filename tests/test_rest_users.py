"""
tests/test_rest_users.py -- Integration tests for /rest user management.

Fixtures used (from conftest.py):
  - rest_client: alice and bob are regular users, root is the admin.

Coverage:
  - admin-only endpoints refuse regular users with code 50 (HTTP 500)
  - getUser self vs other, unknown user -> 70
  - createUser (plain and enc: passwords), duplicates, missing parameters
  - updateUser, changePassword, deleteUser
"""

from __future__ import annotations

from conftest import ADMIN, ALICE, BOB, rest


class TestReadUsers:
    def test_get_users_requires_admin(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUsers", **ALICE)
        assert status == 500
        assert body["error"]["code"] == 50

    def test_get_users_as_admin(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUsers", **ADMIN)
        assert status == 200
        users = {u["username"]: u for u in body["users"]["user"]}
        assert {"alice", "bob", "root", "carol"} <= set(users)
        assert users["root"]["adminRole"] is True
        assert users["alice"]["adminRole"] is False

    def test_get_self(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUser", username="alice", **ALICE)
        assert status == 200
        assert body["user"]["username"] == "alice"
        assert body["user"]["streamRole"] is True

    def test_get_other_user_as_regular_user(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUser", username="bob", **ALICE)
        assert status == 500
        assert body["error"]["code"] == 50

    def test_get_unknown_user_as_admin(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUser", username="nobody", **ADMIN)
        assert status == 404
        assert body["error"]["code"] == 70

    def test_get_user_missing_username(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "getUser", **ALICE)
        assert status == 400
        assert body["error"]["code"] == 10


class TestCreateUser:
    def test_create_and_log_in(self, rest_client) -> None:
        client, _seed = rest_client
        status, _body = rest(client, "createUser", username="dave", password="enc:" + b"davepw".hex(), **ADMIN)
        assert status == 200
        status, _body = rest(client, "getLicense", u="dave", p="davepw")
        assert status == 200

    def test_created_admin(self, rest_client) -> None:
        client, _seed = rest_client
        rest(client, "createUser", username="erin", password="erinpw", adminRole="true", **ADMIN)
        status, _body = rest(client, "getUsers", u="erin", p="erinpw")
        assert status == 200

    def test_duplicate_username(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "createUser", username="alice", password="x", **ADMIN)
        assert status == 500
        assert body["error"]["code"] == 0

    def test_missing_password(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "createUser", username="frank", **ADMIN)
        assert status == 400
        assert body["error"]["code"] == 10

    def test_malformed_enc_password(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "createUser", username="frank", password="enc:zz", **ADMIN)
        assert status == 400
        assert body["error"]["code"] == 10

    def test_regular_user_cannot_create(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "createUser", username="gina", password="x", **BOB)
        assert body["error"]["code"] == 50


class TestChangePassword:
    def test_change_own_password(self, rest_client) -> None:
        client, _seed = rest_client
        rest(client, "createUser", username="hank", password="old", **ADMIN)

        status, _body = rest(client, "changePassword", username="hank", password="new", u="hank", p="old")
        assert status == 200
        assert rest(client, "getLicense", u="hank", p="old")[0] == 401
        assert rest(client, "getLicense", u="hank", p="new")[0] == 200

    def test_new_password_works_with_digest(self, rest_client) -> None:
        from auth.credentials import legacy_token

        client, _seed = rest_client
        rest(client, "createUser", username="ivy", password="first", **ADMIN)
        rest(client, "changePassword", password="second", u="ivy", p="first")
        status, _body = rest(client, "getLicense", u="ivy", t=legacy_token("second", "ab"), s="ab")
        assert status == 200

    def test_cannot_change_someone_else(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "changePassword", username="alice", password="pwned", **BOB)
        assert status == 500
        assert body["error"]["code"] == 50
        assert rest(client, "getLicense", **ALICE)[0] == 200

    def test_admin_can_change_anyone(self, rest_client) -> None:
        client, _seed = rest_client
        rest(client, "createUser", username="jack", password="before", **ADMIN)
        status, _body = rest(client, "changePassword", username="jack", password="after", **ADMIN)
        assert status == 200
        assert rest(client, "getLicense", u="jack", p="after")[0] == 200


class TestUpdateAndDelete:
    def test_update_admin_role(self, rest_client) -> None:
        client, _seed = rest_client
        rest(client, "createUser", username="kate", password="pw", **ADMIN)
        assert rest(client, "getUsers", u="kate", p="pw")[1]["error"]["code"] == 50
        status, _body = rest(client, "updateUser", username="kate", adminRole="true", **ADMIN)
        assert status == 200
        assert rest(client, "getUsers", u="kate", p="pw")[0] == 200

    def test_update_unknown_user(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "updateUser", username="ghost", password="x", **ADMIN)
        assert status == 404
        assert body["error"]["code"] == 70

    def test_delete_user(self, rest_client) -> None:
        client, _seed = rest_client
        rest(client, "createUser", username="leo", password="pw", **ADMIN)
        status, _body = rest(client, "deleteUser", username="leo", **ADMIN)
        assert status == 200
        assert rest(client, "getLicense", u="leo", p="pw")[1]["error"]["code"] == 40

    def test_cannot_delete_self(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "deleteUser", username="root", **ADMIN)
        assert body["error"]["code"] == 50

    def test_delete_unknown(self, rest_client) -> None:
        client, _seed = rest_client
        status, body = rest(client, "deleteUser", username="ghost", **ADMIN)
        assert status == 404
        assert body["error"]["code"] == 70
