"""
图片资源屏障 - 等待表面上所有图片"落定"（加载成功或失败）

职责：
1. 解析图片引用：data URI / 本地路径（相对 uploads_dir）/ http(s) URL
2. 每个引用都有确定结果：Image 或 None（失败），不会无限等待
3. 失败只记录告警，不中断导出（页面显示占位）
4. 同一次导出内缓存已落定的结果（页眉徽标等每页重复出现）

测试要点：
- test_settle_data_uri: data URI 解码
- test_settle_broken_image: 损坏图片返回None
- test_settle_http: httpx 拉取（MockTransport）
"""

from __future__ import annotations

import base64
import binascii
import logging
from io import BytesIO
from pathlib import Path
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image

from ..interfaces import AssetError

logger = logging.getLogger(__name__)


class AssetLoader:
    """图片资源加载器"""

    def __init__(
        self,
        timeout_sec: float = 15.0,
        uploads_dir: Path | None = None,
        client: httpx.Client | None = None,
    ):
        self.timeout_sec = timeout_sec
        self.uploads_dir = uploads_dir
        self._client = client
        self._owns_client = client is None
        self._cache: dict[str, Image.Image | None] = {}

    def __enter__(self) -> AssetLoader:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self._cache.clear()

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout_sec, follow_redirects=True)
        return self._client

    def settle(self, refs: list[str]) -> dict[str, Image.Image | None]:
        """加载全部引用，返回 引用 → 图片（失败为None）"""
        results: dict[str, Image.Image | None] = {}
        for ref in refs:
            if ref in self._cache:
                results[ref] = self._cache[ref]
                continue
            try:
                image = self.load(ref)
            except AssetError as e:
                logger.warning(f"图片加载失败，使用占位: {short_ref(ref)} ({e})")
                image = None
            self._cache[ref] = image
            results[ref] = image

        failed = sum(1 for v in results.values() if v is None)
        logger.debug(f"图片资源已落定: {len(results)} 个, 失败 {failed} 个")
        return results

    def load(self, ref: str) -> Image.Image:
        """加载单个引用（失败抛 AssetError）"""
        data = self._read_bytes(ref)
        try:
            image = Image.open(BytesIO(data))
            image.load()
            return image.convert("RGBA")
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise AssetError(f"无法解码图片: {e}") from e

    def _read_bytes(self, ref: str) -> bytes:
        if ref.startswith("data:"):
            return _decode_data_uri(ref)

        if ref.startswith(("http://", "https://")):
            try:
                response = self.client.get(ref)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise AssetError(f"请求失败: {e}") from e
            return response.content

        path = Path(ref)
        if not path.is_absolute() and self.uploads_dir is not None:
            path = self.uploads_dir / path
        try:
            return path.read_bytes()
        except (OSError, ValueError) as e:
            raise AssetError(f"读取文件失败: {path!r}") from e


def _decode_data_uri(ref: str) -> bytes:
    header, sep, payload = ref.partition(",")
    if not sep:
        raise AssetError("data URI 缺少数据段")
    media_type = header[len("data:"):].split(";")[0]
    if media_type == "image/svg+xml":
        raise AssetError("不支持矢量图片(SVG)")
    if ";base64" in header:
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise AssetError(f"base64 解码失败: {e}") from e
    return unquote_to_bytes(payload)


def short_ref(ref: str, limit: int = 60) -> str:
    return ref if len(ref) <= limit else ref[:limit] + "..."
