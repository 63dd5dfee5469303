"""Static asset serving for the catch-all GET route."""

from pathlib import Path

from starlette.responses import PlainTextResponse, Response

from payrelay.common.logging import logger

CONTENT_TYPES = {
    ".html": "text/html; charset=UTF-8",
    ".css": "text/css; charset=UTF-8",
    ".js": "application/javascript; charset=UTF-8",
    ".json": "application/json; charset=UTF-8",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


class StaticFileResolver:
    """Maps request paths to files under a root directory."""

    def __init__(self, root: str | Path, index_document: str, max_bytes: int) -> None:
        self.root = Path(root).resolve()
        self.index_document = index_document
        self.max_bytes = max_bytes

    def locate(self, request_path: str) -> Path | None:
        """Resolve a URL path inside the root; `None` when it escapes the root."""

        relative = request_path.lstrip("/")
        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        if candidate.is_dir():
            candidate = candidate / self.index_document
        return candidate

    def serve(self, request_path: str) -> Response:
        path = self.locate(request_path)
        if path is None or not path.is_file():
            logger.info("static file not found path=%s", request_path)
            return PlainTextResponse("404 Not Found", status_code=404)
        try:
            size = path.stat().st_size
            if size > self.max_bytes:
                logger.warning("static file too large path=%s size=%s", request_path, size)
                return PlainTextResponse("413 Payload Too Large", status_code=413)
            data = path.read_bytes()
        except OSError as exc:
            logger.error("static file read failed path=%s: %s", request_path, exc)
            return PlainTextResponse("500 Internal Server Error", status_code=500)
        return Response(content=data, media_type=content_type_for(path))
