import logging

logger = logging.getLogger(__name__)


class Notifier:
    """Collects user-facing notifications in the shape the views return.

    Each entry is a dict with "title", "message" and "tags" (a bootstrap
    contextual class: success, info, warning or danger).
    """

    def __init__(self):
        self.messages: list[dict] = []

    def __call__(self, title: str, message: str = "", tags: str = "info") -> None:
        if tags == "danger":
            logger.warning("%s: %s", title, message)
        self.messages.append({"title": title, "message": message, "tags": tags})

    def error(self, title: str, message: str = "") -> None:
        self(title, message, tags="danger")

    def success(self, title: str, message: str = "") -> None:
        self(title, message, tags="success")

    @property
    def has_errors(self) -> bool:
        return any(entry["tags"] == "danger" for entry in self.messages)
