"""KServe custom model runtime for the query pipeline."""

from __future__ import annotations

from typing import Any

import kserve

from docchat.exceptions import DocChatError
from docchat.serving.dependencies import Services, get_services


class DocChatModel(kserve.Model):
    """KServe-compatible model that answers queries without streaming.

    Each instance is run through the same query pipeline as the HTTP
    chat route; the token stream is drained into one answer.
    """

    def __init__(self, name: str = "docchat", services: Services | None = None) -> None:
        super().__init__(name)
        self.services = services
        self.ready = False

    def load(self) -> bool:
        """Build the shared services (called once at startup)."""
        if self.services is None:
            self.services = get_services()
        self.services.store.ensure_collection()
        self.ready = True
        return self.ready

    async def predict(self, payload: dict[str, Any], headers: dict[str, str] | None = None) -> dict:
        """Run inference — called on every request.

        Parameters
        ----------
        payload:
            ``{"instances": [{"user_id": "...", "query": "..."}]}``.
        headers:
            Optional HTTP headers.

        Returns
        -------
        dict
            ``{"predictions": [{"answer": "...", "sources": [...]}]}``;
            a failed instance carries ``"error"`` instead of ``"answer"``.
        """
        predictions = []

        for instance in payload.get("instances", []):
            user_id = instance.get("user_id") or "kserve"
            query = instance.get("query", "")
            if not query.strip():
                predictions.append({"error": "Missing required fields: query"})
                continue
            try:
                answer, contexts = await self.services.query.answer(user_id, query)
            except DocChatError as exc:
                predictions.append({"error": exc.message})
                continue
            predictions.append({"answer": answer, "sources": [c.source for c in contexts]})

        return {"predictions": predictions}


if __name__ == "__main__":
    model = DocChatModel()
    model.load()
    kserve.ModelServer().start([model])
