from __future__ import annotations

import httpx

from app.cloud.errors import QueryError, raise_for_error


class TableQuery:
    """Builder for one request against the platform's REST table API.

    Mirrors the chained client style: ``table("bookmarks").select("*")
    .eq("user_id", uid).order("created_at", desc=True).execute()``.
    """

    def __init__(self, cloud, name: str, access_token: str | None = None):
        self.cloud = cloud
        self.name = name
        self.access_token = access_token
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._body = None
        self._prefer: str | None = None

    def select(self, columns: str = "*") -> "TableQuery":
        self._method = "GET"
        self._params.append(("select", columns))
        return self

    def insert(self, rows) -> "TableQuery":
        if isinstance(rows, dict):
            rows = [rows]
        self._method = "POST"
        self._body = list(rows)
        self._prefer = "return=representation"
        return self

    def delete(self) -> "TableQuery":
        self._method = "DELETE"
        self._prefer = "return=representation"
        return self

    def eq(self, column: str, value) -> "TableQuery":
        self._params.append((column, f"eq.{value}"))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        direction = "desc" if desc else "asc"
        self._params.append(("order", f"{column}.{direction}"))
        return self

    def execute(self) -> list[dict]:
        if self._method == "DELETE" and not any(
            key not in {"select", "order"} for key, _ in self._params
        ):
            raise QueryError("refusing to delete without a filter", status_code=400)

        headers = self.cloud.headers(self.access_token)
        if self._prefer:
            headers["Prefer"] = self._prefer
        try:
            response = self.cloud.http.request(
                self._method,
                f"{self.cloud.url}/rest/v1/{self.name}",
                params=self._params,
                json=self._body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise QueryError(f"table service unreachable: {exc}", status_code=503)
        raise_for_error(response, QueryError)

        if not response.content:
            return []
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return data or []
