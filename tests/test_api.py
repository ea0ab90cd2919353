import io
from unittest import mock

import pytest
from elasticsearch import BadRequestError
from httpx import AsyncClient
from PIL import Image

from files_manager.services import Services
from files_manager.worker import JobRunner
from tests.tools import b64, basic_auth, check, login, png_bytes, register, token_headers, upload

pytestmark = pytest.mark.anyio


async def test_status_and_stats(client: AsyncClient):
    res = await client.get("/status")
    check(res, 200)
    assert res.json() == {"redis": True, "db": True}

    await register(client, "a@b.com")
    res = await client.get("/stats")
    check(res, 200)
    assert res.json() == {"users": 1, "files": 0}


async def test_register(client: AsyncClient):
    user = await register(client, "a@b.com", "pw")
    assert set(user.keys()) == {"id", "email"}
    assert user["email"] == "a@b.com"

    for body, error in [
        ({"password": "pw"}, "Missing email"),
        ({"email": "c@d.com"}, "Missing password"),
        ({"email": "a@b.com", "password": "other"}, "Already exist"),
    ]:
        res = await client.post("/users", json=body)
        check(res, 400)
        assert res.json() == {"error": error}
    check(await client.post("/users"), 400)


async def test_connect_disconnect(client: AsyncClient):
    user = await register(client, "a@b.com", "pw")
    token = await login(client, "a@b.com", "pw")

    res = await client.get("/users/me", headers=token_headers(token))
    check(res, 200)
    assert res.json() == user

    check(await client.get("/disconnect", headers=token_headers(token)), 204)
    check(await client.get("/users/me", headers=token_headers(token)), 401)
    # a destroyed session cannot be destroyed again
    res = await client.get("/disconnect", headers=token_headers(token))
    check(res, 401)
    assert res.json() == {"error": "Unauthorized"}


async def test_connect_failures(client: AsyncClient):
    await register(client, "a@b.com", "pw")
    wrong_password = await client.get("/connect", headers=basic_auth("a@b.com", "wrong"))
    unknown_email = await client.get("/connect", headers=basic_auth("x@b.com", "pw"))
    check(wrong_password, 401)
    check(unknown_email, 401)
    assert wrong_password.json() == unknown_email.json() == {"error": "Unauthorized"}

    check(await client.get("/connect"), 401)
    check(await client.get("/connect", headers={"Authorization": "Bearer abc"}), 401)
    check(await client.get("/connect", headers={"Authorization": "Basic bm9jb2xvbg=="}), 401)  # "nocolon"
    check(await client.get("/users/me"), 401)
    check(await client.get("/users/me", headers=token_headers("nonexisting")), 401)


async def test_upload(client: AsyncClient):
    await register(client, "a@b.com")
    token = await login(client, "a@b.com")
    check(await client.post("/files", json=dict(name="root", type="folder")), 401)

    root = await upload(client, token, name="root", type="folder")
    assert root["parentId"] == 0
    assert root["isPublic"] is False
    assert "storageKey" not in root

    txt = await upload(client, token, name="a.txt", type="file", parentId=root["id"], data=b64(b"hello"))
    assert txt["parentId"] == root["id"]
    assert set(txt.keys()) == {"id", "userId", "name", "type", "parentId", "isPublic"}

    for body, error in [
        (dict(type="folder"), "Missing name"),
        (dict(name="x"), "Missing type"),
        (dict(name="x", type="directory"), "Missing type"),
        (dict(name="x", type="file"), "Missing data"),
        (dict(name="x", type="folder", parentId="nonexisting"), "Parent not found"),
        (dict(name="x", type="file", parentId=txt["id"], data=b64(b"x")), "Parent is not a folder"),
    ]:
        assert (await upload(client, token, expected=400, **body)) == {"error": error}

    # files of others are invisible, also as parents
    await register(client, "c@d.com")
    other = await login(client, "c@d.com")
    assert (await upload(client, other, expected=400, name="x", type="folder", parentId=root["id"])) == {
        "error": "Parent not found"
    }
    check(await client.get(f"/files/{root['id']}", headers=token_headers(other)), 404)

    res = await client.get(f"/files/{txt['id']}", headers=token_headers(token))
    check(res, 200)
    assert res.json() == txt


async def test_list(client: AsyncClient):
    await register(client, "a@b.com")
    token = await login(client, "a@b.com")
    root = await upload(client, token, name="root", type="folder")
    names = [f"f{i}.txt" for i in range(21)]
    for name in names:
        await upload(client, token, name=name, type="file", parentId=root["id"], data=b64(name.encode()))

    res = await client.get("/files", headers=token_headers(token))
    check(res, 200)
    assert len(res.json()) == 20
    res = await client.get("/files", params=dict(page=1), headers=token_headers(token))
    assert [f["name"] for f in res.json()] == ["f0.txt", "root"]
    res = await client.get("/files", params=dict(parentId=root["id"], page=1), headers=token_headers(token))
    assert [f["name"] for f in res.json()] == ["f0.txt"]
    res = await client.get("/files", params=dict(parentId=0), headers=token_headers(token))
    assert [f["name"] for f in res.json()] == ["root"]

    await register(client, "c@d.com")
    other = await login(client, "c@d.com")
    res = await client.get("/files", headers=token_headers(other))
    check(res, 200)
    assert res.json() == []
    check(await client.get("/files"), 401)


async def test_publish_and_content(client: AsyncClient):
    await register(client, "a@b.com")
    token = await login(client, "a@b.com")
    folder = await upload(client, token, name="root", type="folder")
    txt = await upload(client, token, name="a.txt", type="file", data=b64(b"hello"))
    url = f"/files/{txt['id']}/data"

    res = await client.get(url, headers=token_headers(token))
    check(res, 200)
    assert res.content == b"hello"
    assert res.headers["content-type"].startswith("text/plain")

    # private content is not found for anyone but the owner
    await register(client, "c@d.com")
    other = await login(client, "c@d.com")
    check(await client.get(url), 404)
    check(await client.get(url, headers=token_headers(other)), 404)
    check(await client.put(f"/files/{txt['id']}/publish", headers=token_headers(other)), 404)
    check(await client.put(f"/files/{txt['id']}/publish"), 401)

    res = await client.put(f"/files/{txt['id']}/publish", headers=token_headers(token))
    check(res, 200)
    assert res.json()["isPublic"] is True
    res = await client.get(url)
    check(res, 200)
    assert res.content == b"hello"

    res = await client.put(f"/files/{txt['id']}/unpublish", headers=token_headers(token))
    check(res, 200)
    assert res.json()["isPublic"] is False
    check(await client.get(url), 404)
    check(await client.get(url, headers=token_headers(token)), 200)

    res = await client.get(f"/files/{folder['id']}/data", headers=token_headers(token))
    check(res, 400)
    assert res.json() == {"error": "A folder doesn't have content"}
    check(await client.get("/files/nonexisting/data", headers=token_headers(token)), 404)
    check(await client.get(url, params=dict(size=42), headers=token_headers(token)), 400)


async def test_end_to_end_thumbnails(client: AsyncClient, services: Services):
    res = await client.post("/users", json=dict(email="a@b.com", password="pw"))
    check(res, 201)
    # drain the welcome job
    welcome = await services.queue.claim("welcome")
    assert welcome is not None
    await services.queue.ack(welcome)

    token = await login(client, "a@b.com", "pw")
    root = await upload(client, token, name="root", type="folder")
    assert root["parentId"] == 0
    image = await upload(client, token, name="img.png", type="image", parentId=root["id"], data=b64(png_bytes(1000, 800)))

    job = await services.queue.claim("thumbnail")
    assert job is not None
    assert job.payload == {"fileId": image["id"], "userId": image["userId"]}

    url = f"/files/{image['id']}/data"
    # thumbnails don't exist until the worker has run
    check(await client.get(url, params=dict(size=100), headers=token_headers(token)), 404)

    [runner] = services.job_runners(["thumbnail"])
    assert isinstance(runner, JobRunner)
    assert await runner.process(job) is True

    for width, height in [(100, 80), (250, 200), (500, 400)]:
        res = await client.get(url, params=dict(size=width), headers=token_headers(token))
        check(res, 200)
        assert res.headers["content-type"] == "image/png"
        assert Image.open(io.BytesIO(res.content)).size == (width, height)
    res = await client.get(url, headers=token_headers(token))
    assert Image.open(io.BytesIO(res.content)).size == (1000, 800)


async def test_page_beyond_result_window(client: AsyncClient):
    await register(client, "a@b.com")
    token = await login(client, "a@b.com")
    await upload(client, token, name="root", type="folder")
    res = await client.get("/files", params=dict(page=500), headers=token_headers(token))
    check(res, 200)
    assert res.json() == []


async def test_elastic_errors_are_reported_as_json(client: AsyncClient, services: Services):
    await register(client, "a@b.com")
    token = await login(client, "a@b.com")
    error = BadRequestError("search_phase_execution_exception", meta=mock.Mock(status=400), body={})
    with mock.patch.object(services.files, "list", side_effect=error):
        res = await client.get("/files", headers=token_headers(token))
    check(res, 500)
    assert res.json() == {"error": "Internal server error"}
