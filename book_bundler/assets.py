from __future__ import annotations

import hashlib
import http.client
import re
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional
from urllib import request

from PIL import Image

from book_bundler.sanitize import filename_from_url, sanitize_file_name


class AssetFetchError(RuntimeError):
    """Raised when a remote asset cannot be downloaded."""


DEFAULT_TIMEOUT = 90.0
USER_AGENT = "book-bundler/0.1"
DEFAULT_IMAGE_NAME = "image"

CSS_URL_PATTERN = re.compile(r"url\((\s)?([\"|'])?(.*?)([\"|'])?(\s)?\)", re.IGNORECASE)
LOCAL_IMAGE_PATTERN = re.compile(r"^\.\./images/")
REMOTE_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
REMOTE_IMAGE_SUFFIX_PATTERN = re.compile(r"(\.jpe?g|\.gif|\.png)$", re.IGNORECASE)

FetchFunc = Callable[[str, Optional[float]], bytes]
ValidateFunc = Callable[[bytes], bool]
ImageResizer = Callable[[Path, int, int], bytes]


def fetch_url(url: str, timeout: Optional[float] = DEFAULT_TIMEOUT) -> bytes:
    if not REMOTE_URL_PATTERN.match(url):
        raise AssetFetchError(f"Unsupported asset source: {url}")
    req = request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        if timeout is None:
            response_context = request.urlopen(req)
        else:
            response_context = request.urlopen(req, timeout=timeout)
        with response_context as response:
            return response.read()
    except (OSError, ValueError, http.client.HTTPException) as exc:
        raise AssetFetchError(f"Could not fetch {url}: {exc}") from exc


def is_valid_image(data: bytes) -> bool:
    if not data:
        return False
    try:
        with Image.open(BytesIO(data)) as image:
            image.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError):
        return False
    return True


def resize_image(source: Path, max_width: int, max_height: int) -> bytes:
    """Shrink an image to fit the box, keeping its aspect ratio.

    Images already inside the box are re-encoded at their own size.
    """
    with Image.open(source) as image:
        image_format = image.format or "PNG"
        resized = image.copy()
    resized.thumbnail((max_width, max_height))
    if image_format.upper() == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    buffer = BytesIO()
    resized.save(buffer, format=image_format)
    return buffer.getvalue()


def _md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


@dataclass
class AssetCache:
    """Per-build record of fetched URLs and on-disk asset digests."""

    urls: dict[tuple[str, str], str] = field(default_factory=dict)
    digests: dict[Path, str] = field(default_factory=dict)

    def digest_of(self, path: Path) -> str:
        digest = self.digests.get(path)
        if digest is None:
            digest = _md5(path.read_bytes())
            self.digests[path] = digest
        return digest


class ImageFetcher:
    def __init__(
        self,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        cache: Optional[AssetCache] = None,
        fetch: FetchFunc = fetch_url,
        validate: ValidateFunc = is_valid_image,
        verbose: bool = False,
    ) -> None:
        self.timeout = timeout
        self.cache = cache if cache is not None else AssetCache()
        self._fetch = fetch
        self._validate = validate
        self.verbose = verbose

    def fetch_and_save_unique_image(self, url: str, dest_dir: Path) -> Optional[str]:
        """Download ``url`` into ``dest_dir`` and return the saved filename.

        Returns ``None`` when the download fails or the body is not an
        image; callers keep the original reference in that case.
        """
        url = (url or "").strip()
        if not url:
            return None
        cache_key = (str(dest_dir), url)
        cached = self.cache.urls.get(cache_key)
        if cached and (dest_dir / cached).exists():
            return cached
        try:
            data = self._fetch(url, self.timeout)
        except AssetFetchError as exc:
            if self.verbose:
                print(f"[assets] Skipped {url}: {exc}")
            return None
        if not self._validate(data):
            if self.verbose:
                print(f"[assets] Skipped {url}: not an image.")
            return None
        filename = filename_from_url(url) or DEFAULT_IMAGE_NAME
        filename = self.save_unique(dest_dir, filename, data)
        self.cache.urls[cache_key] = filename
        return filename

    def save_unique(self, dest_dir: Path, filename: str, data: bytes) -> str:
        """Write ``data`` as ``filename`` unless that name holds other content.

        Identical content already on disk is reused; otherwise the first
        free or matching ``name-N.ext`` is used. Existing files are never
        overwritten.
        """
        digest = _md5(data)
        candidate = Path(filename)
        stem, suffix = candidate.stem, candidate.suffix
        name = filename
        counter = 1
        while True:
            path = dest_dir / name
            if not path.exists():
                path.write_bytes(data)
                self.cache.digests[path] = digest
                if self.verbose:
                    print(f"[assets] Saved images/{name}.")
                return name
            if self.cache.digest_of(path) == digest:
                return name
            name = f"{stem}-{counter}{suffix}"
            counter += 1


def css_urls(css: str) -> list[str]:
    """Unique url(...) targets, longest first so none is a prefix of a later one."""
    urls = list(dict.fromkeys(match.group(3) for match in CSS_URL_PATTERN.finditer(css)))
    return sorted((url for url in urls if url), key=len, reverse=True)


def is_local_image_reference(url: str) -> bool:
    # Exactly two separators: "../images/name" and nothing deeper or sideways.
    return bool(LOCAL_IMAGE_PATTERN.match(url)) and url.count("/") == 2


def is_remote_image_reference(url: str) -> bool:
    return bool(REMOTE_URL_PATTERN.match(url)) and bool(
        REMOTE_IMAGE_SUFFIX_PATTERN.search(url)
    )


def scrape_and_knead_css(
    source_path: Path,
    copy_path: Path,
    images_dir: Path,
    fetcher: ImageFetcher,
) -> str:
    """Copy a stylesheet, pulling its images into ``images_dir``.

    References that are neither ``../images/<name>`` nor remote
    jpg/gif/png URLs are left exactly as written.
    """
    css_dir = source_path.parent
    css = source_path.read_text(encoding="utf-8")
    for url in css_urls(css):
        if is_local_image_reference(url):
            original_name = url.rsplit("/", 1)[-1]
            filename = sanitize_file_name(original_name)
            local_image = (css_dir / url).resolve()
            if not filename or not local_image.is_file():
                continue
            filename = fetcher.save_unique(images_dir, filename, local_image.read_bytes())
            if filename != original_name:
                css = css.replace(url, f"../images/{filename}")
        elif is_remote_image_reference(url):
            new_filename = fetcher.fetch_and_save_unique_image(url, images_dir)
            if new_filename:
                css = css.replace(url, f"../images/{new_filename}")
    copy_path.parent.mkdir(parents=True, exist_ok=True)
    copy_path.write_text(css, encoding="utf-8")
    return css
