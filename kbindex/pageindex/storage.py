"""Filesystem persistence for PageIndex trees and per-session metadata.

Layout under ``base_dir``::

    sessions/<session>/.pageindex/meta.json
    sessions/<session>/.pageindex/indices/<document>/index.json
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Optional, Sequence, Union

import aiofiles

from ..conf import KB_INDEX_DIR
from ..llm.adapter import LLMAdapter
from ..settings import PageIndexSettings
from .builder import build_page_index
from .schemas import (
    BuildIndexResult,
    PageIndexSearchResult,
    PageIndexTree,
    SessionDocumentMeta,
    SessionPageIndexMeta,
    TocItem,
)
from .search import search_page_index
from .strategies import SearchStrategy

logger = logging.getLogger("kbindex.pageindex")

MIME_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "txt": "text/plain",
    "md": "text/markdown",
    "markdown": "text/markdown",
}


def mime_type_for(filename: str) -> str:
    ext = Path(filename).suffix.lower().lstrip(".")
    return MIME_TYPES.get(ext, "application/octet-stream")


def _now_ms() -> int:
    return int(time.time() * 1000)


class PageIndexStore:
    """Saves, loads and searches PageIndex trees on disk.

    Args:
        base_dir: Workspace root; defaults to ``KB_INDEX_DIR``.
    """

    def __init__(self, base_dir: Union[str, Path, None] = None):
        self.base_dir = Path(base_dir) if base_dir else Path(KB_INDEX_DIR)
        self._meta_lock = asyncio.Lock()

    def pageindex_dir(self, session_key: str) -> Path:
        return self.base_dir / "sessions" / session_key / ".pageindex"

    def meta_path(self, session_key: str) -> Path:
        return self.pageindex_dir(session_key) / "meta.json"

    def index_path(self, session_key: str, document_id: str) -> Path:
        return self.pageindex_dir(session_key) / "indices" / document_id / "index.json"

    async def save_index(
        self,
        tree: PageIndexTree,
        session_key: str,
        document_id: str,
    ) -> Path:
        """Write ``tree`` as pretty-printed JSON and return its path."""
        path = self.index_path(session_key, document_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            tree.model_dump(by_alias=True, exclude_none=True),
            indent=2,
            ensure_ascii=False,
        )
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(payload)
        logger.debug("Saved PageIndex %s/%s to %s", session_key, document_id, path)
        return path

    async def load_index(self, index_path: Union[str, Path]) -> Optional[PageIndexTree]:
        """Read a saved tree; ``None`` when missing or unreadable."""
        try:
            async with aiofiles.open(index_path, "r", encoding="utf-8") as f:
                content = await f.read()
            return PageIndexTree.model_validate(json.loads(content))
        except FileNotFoundError:
            logger.debug("Index not found: %s", index_path)
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable index %s: %s", index_path, exc)
            return None

    def has_index(self, session_key: str, document_id: str) -> bool:
        return self.index_path(session_key, document_id).is_file()

    async def get_session_meta(self, session_key: str) -> Optional[SessionPageIndexMeta]:
        path = self.meta_path(session_key)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
            return SessionPageIndexMeta.model_validate(json.loads(content))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable session meta %s: %s", path, exc)
            return None

    async def update_session_meta(
        self,
        session_key: str,
        document_id: str,
        filename: str,
        index_path: Union[str, Path, None] = None,
    ) -> SessionPageIndexMeta:
        """Insert or replace one document entry in the session's ``meta.json``."""
        async with self._meta_lock:
            meta = await self.get_session_meta(session_key) or SessionPageIndexMeta(
                session_key=session_key
            )
            entry = SessionDocumentMeta(
                document_id=document_id,
                filename=filename,
                mime_type=mime_type_for(filename),
                index_path=str(index_path) if index_path else None,
                built_at=_now_ms(),
            )
            documents = [d for d in meta.documents if d.document_id != document_id]
            position = next(
                (i for i, d in enumerate(meta.documents) if d.document_id == document_id),
                len(documents),
            )
            documents.insert(position, entry)
            meta = SessionPageIndexMeta(
                session_key=session_key,
                documents=documents,
                updated_at=_now_ms(),
            )

            path = self.meta_path(session_key)
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(meta.model_dump(by_alias=True), indent=2))
            tmp_path.replace(path)
        return meta

    async def build_index(
        self,
        text: str,
        page_count: int,
        session_key: str,
        document_id: str,
        filename: str,
        adapter: LLMAdapter,
        toc_items: Optional[Sequence[TocItem]] = None,
        settings: Optional[PageIndexSettings] = None,
    ) -> BuildIndexResult:
        """Build, save and register the index of one document."""
        try:
            tree = await build_page_index(
                text,
                page_count,
                Path(filename).name,
                adapter,
                toc_items=toc_items,
                settings=settings,
            )
            path = await self.save_index(tree, session_key, document_id)
            await self.update_session_meta(session_key, document_id, Path(filename).name, path)
        except Exception as exc:
            logger.error("PageIndex build failed for %s: %s", document_id, exc)
            return BuildIndexResult(success=False, document_id=document_id, error=str(exc))
        return BuildIndexResult(success=True, document_id=document_id, index_path=str(path))

    async def search(
        self,
        index_path: Union[str, Path],
        query: str,
        adapter: Optional[LLMAdapter] = None,
        limit: int = 5,
        strategy: Optional[SearchStrategy] = None,
    ) -> list[PageIndexSearchResult]:
        """Load an index and search it; ``[]`` on any failure."""
        tree = await self.load_index(index_path)
        if tree is None:
            return []
        try:
            results = await search_page_index(
                tree, query, adapter=adapter, limit=limit, strategy=strategy
            )
        except Exception as exc:
            logger.error("PageIndex search failed on %s: %s", index_path, exc)
            return []
        return [r.model_copy(update={"path": str(index_path)}) for r in results]
