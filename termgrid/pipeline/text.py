"""Text extractors that need no external service."""

from typing import Mapping

from termgrid.document import SourceFile
from termgrid.errors import UnsupportedMimeType
from termgrid.pipeline.interfaces import SourceLoaderInterface, TextExtractorInterface


class PlainTextExtractor(TextExtractorInterface):
    """Decode ``text/plain`` uploads directly.

    Anything else needs a vision or document backend and is refused.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def extract_text(self, file: SourceFile) -> str:
        if file.mime_type != "text/plain":
            raise UnsupportedMimeType(file.mime_type, file.filename)
        return file.content.decode(self.encoding, errors="replace")


class MimeRoutingTextExtractor(TextExtractorInterface):
    """Dispatch to a backend chosen by MIME type.

    Example:
        ```python
        extractor = MimeRoutingTextExtractor({
            "text/plain": PlainTextExtractor(),
            "application/pdf": my_vision_backend,
        })
        ```
    """

    def __init__(self, routes: Mapping[str, TextExtractorInterface]) -> None:
        self._routes = dict(routes)

    async def extract_text(self, file: SourceFile) -> str:
        backend = self._routes.get(file.mime_type)
        if backend is None:
            raise UnsupportedMimeType(file.mime_type, file.filename)
        return await backend.extract_text(file)


class InMemorySourceLoader(SourceLoaderInterface):
    """Keeps uploads in a dict; useful for tests and single-process sessions."""

    def __init__(self) -> None:
        self._files: dict[str, SourceFile] = {}

    async def save(self, document_id: str, file: SourceFile) -> None:
        self._files[document_id] = file

    async def load(self, document_id: str) -> SourceFile | None:
        return self._files.get(document_id)
