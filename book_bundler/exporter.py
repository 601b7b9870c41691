from __future__ import annotations

import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Optional

from book_bundler.assets import (
    DEFAULT_TIMEOUT,
    AssetCache,
    FetchFunc,
    ImageFetcher,
    ImageResizer,
    fetch_url,
    resize_image,
    scrape_and_knead_css,
)
from book_bundler.contents import SectionKind
from book_bundler.filenames import archive_filename
from book_bundler.index import write_index
from book_bundler.kneader import HtmlKneader
from book_bundler.metadata import BookContentProvider
from book_bundler.packager import zip_directory
from book_bundler.preprocess import ContentFilter, ContentPreprocessor
from book_bundler.renderers import (
    COVER_MAX_HEIGHT,
    COVER_MAX_WIDTH,
    PACKAGE_DIR,
    RenderContext,
    TemplateRenderer,
    create_content,
    render_html_template,
)


DEFAULT_STYLESHEET = PACKAGE_DIR / "templates" / "css" / "book.css"
CONTAINER_DIRS = ("css", "gfx", "images", "js")
WORKDIR_PREFIX = "book-bundler-"


class ExportError(RuntimeError):
    """Base class for build-level failures."""


class WorkingDirectoryError(ExportError):
    """Raised when the build starts without a usable working directory."""


@dataclass(frozen=True)
class ExportSettings:
    output_dir: Path = field(default_factory=lambda: Path("exports"))
    stylesheet: Path = DEFAULT_STYLESHEET
    timeout: Optional[float] = DEFAULT_TIMEOUT
    site_url: str = ""
    cover_max_width: int = COVER_MAX_WIDTH
    cover_max_height: int = COVER_MAX_HEIGHT
    archive_extension: str = ".hpub"
    verbose: bool = False


@dataclass(frozen=True)
class ExportResult:
    success: bool
    output_path: Optional[Path] = None
    error: Optional[str] = None
    warnings: tuple[str, ...] = ()


def remove_working_directory(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)


@contextmanager
def working_directory(prefix: str = WORKDIR_PREFIX) -> Iterator[Path]:
    """Temporary staging directory, removed once whatever happens inside."""
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        remove_working_directory(path)


def create_container(work_dir: Path) -> None:
    for dirname in CONTAINER_DIRS:
        (work_dir / dirname).mkdir(exist_ok=True)


def create_stylesheet(work_dir: Path, stylesheet: Path, fetcher: ImageFetcher) -> str:
    copy_path = work_dir / "css" / stylesheet.name
    scrape_and_knead_css(stylesheet, copy_path, work_dir / "images", fetcher)
    return stylesheet.name


class BookExporter:
    def __init__(
        self,
        provider: BookContentProvider,
        settings: Optional[ExportSettings] = None,
        *,
        content_filter: Optional[ContentFilter] = None,
        template: TemplateRenderer = render_html_template,
        resize: ImageResizer = resize_image,
        fetch: FetchFunc = fetch_url,
        lookup: Optional[Mapping[str, SectionKind]] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or ExportSettings()
        self.content_filter = content_filter
        self.template = template
        self.resize = resize
        self.fetch = fetch
        self.lookup = lookup

    def _log(self, message: str) -> None:
        if self.settings.verbose:
            print(f"[hpub] {message}")

    def convert(self) -> ExportResult:
        with working_directory() as work_dir:
            return self.convert_in(work_dir)

    def convert_in(self, work_dir: Path) -> ExportResult:
        """Build the archive from an existing, empty working directory."""
        if not work_dir.is_dir():
            raise WorkingDirectoryError(
                f"Working directory {work_dir} must exist before converting."
            )
        settings = self.settings
        fetcher = ImageFetcher(
            timeout=settings.timeout,
            cache=AssetCache(),
            fetch=self.fetch,
            verbose=settings.verbose,
        )
        kneader: Optional[HtmlKneader] = None
        try:
            metadata = dict(self.provider.get_metadata())
            if not metadata.get("url") and settings.site_url:
                metadata["url"] = settings.site_url
            site_url = settings.site_url or metadata.get("url", "")
            kneader = HtmlKneader(work_dir / "images", fetcher, site_url=site_url)

            create_container(work_dir)
            contents = ContentPreprocessor(
                kneader, self.content_filter
            ).preprocess_book_contents(self.provider.get_book_contents())
            kneader.lookup = (
                dict(self.lookup) if self.lookup is not None else contents.export_lookup()
            )
            for slug in contents.duplicate_slugs():
                kneader.errors.append(
                    f"slug '{slug}' is used by more than one section; "
                    "links to it resolve to the first one."
                )

            stylesheet = create_stylesheet(work_dir, settings.stylesheet, fetcher)
            ctx = RenderContext(
                work_dir=work_dir,
                stylesheet=stylesheet,
                kneader=kneader,
                template=self.template,
                resize=self.resize,
                cover_max_width=settings.cover_max_width,
                cover_max_height=settings.cover_max_height,
                language=metadata.get("language") or "en",
                verbose=settings.verbose,
            )
            manifest = create_content(ctx, contents, metadata)
            write_index(work_dir, manifest, metadata, ctx.cover_image)
            self._log(f"Rendered {len(manifest)} page(s).")

            output_path = settings.output_dir / archive_filename(
                metadata.get("title", ""), settings.archive_extension
            )
            file_count = zip_directory(work_dir, output_path)
        except Exception as exc:
            self._log(f"Export failed: {exc}")
            return ExportResult(
                success=False,
                error=str(exc) or exc.__class__.__name__,
                warnings=self._warnings(kneader),
            )
        self._log(f"Archived {file_count} file(s) to {output_path}.")
        return ExportResult(
            success=True, output_path=output_path, warnings=self._warnings(kneader)
        )

    def _warnings(self, kneader: Optional[HtmlKneader]) -> tuple[str, ...]:
        if kneader is None:
            return ()
        if self.settings.verbose:
            for message in kneader.errors:
                print(f"[knead] {message}")
        return tuple(kneader.errors)


def export_book(
    provider: BookContentProvider,
    settings: Optional[ExportSettings] = None,
    **kwargs,
) -> ExportResult:
    return BookExporter(provider, settings, **kwargs).convert()
