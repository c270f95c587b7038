"""Request helpers shared by the HTTP tests."""
from httpx import AsyncClient


async def register(client: AsyncClient, username: str, password: str = "secret") -> dict:
    """Register *username* and return ``Authorization`` headers for it."""
    resp = await client.post("/api/users", json={
        "user": {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        },
    })
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Token {resp.json()['user']['token']}"}


async def create_article(
    client: AsyncClient,
    headers: dict,
    title: str = "Hello World",
    tags: list[str] | None = None,
) -> dict:
    article = {"title": title, "description": f"About {title}", "body": f"Body of {title}"}
    if tags is not None:
        article["tagList"] = tags
    resp = await client.post("/api/articles", json={"article": article}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["article"]
