"""
CV download (``GET /api/cv/download?format=pdf|html|json``) and stats.
"""

import logging
from datetime import datetime, timezone

from ..cache.base import CacheStore
from ..data.repositories import PortfolioRepository
from ..errors import CacheError, NotFoundError, ValidationError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, success
from ..http.status_codes import HTTPStatus
from ..services.cv import FORMATS, CvRenderer, PdfUnavailable, safe_filename


logger = logging.getLogger(__name__)


DOWNLOADS_KEY = "cv:downloads"
# download counter window; long enough to read as a running total
DOWNLOADS_WINDOW = 10 * 365 * 24 * 3600

CV_CACHE_SECONDS = 3600


class CvHandler:

    def __init__(self, repository: PortfolioRepository, renderer: CvRenderer, store: CacheStore):
        self.repository = repository
        self.renderer = renderer
        self.store = store

    def download(self, request: HTTPRequest) -> HTTPResponse:
        output = (request.get_query("format", "pdf") or "pdf").lower()
        if output not in FORMATS:
            raise ValidationError("Unsupported format. Use: pdf, html, json")

        info = self.repository.personal_info()
        if info is None:
            raise NotFoundError("Personal information not found")

        cv = self.renderer.build_data(
            personal_info=info,
            skills=self.repository.skills(),
            experience=self.repository.experience(),
            education=self.repository.education(),
            projects=self.repository.projects(),
        )
        self._count_download()

        if output == "json":
            return success(cv, "CV data retrieved successfully")

        name = safe_filename(info.get("full_name", ""))
        if output == "pdf":
            try:
                document = self.renderer.render_pdf(self.renderer.render_html(cv))
            except PdfUnavailable as e:
                logger.info(f"Serving print-ready HTML instead of PDF: {e}")
                return self._html(cv, name, print_optimized=True)
            return (ResponseBuilder()
                .status(HTTPStatus.OK)
                .attachment(document, f"cv_{name}.pdf", "application/pdf")
                .cache(CV_CACHE_SECONDS)
                .build())

        return self._html(cv, name)

    def _html(self, cv, name: str, print_optimized: bool = False) -> HTTPResponse:
        document = self.renderer.render_html(cv, print_optimized=print_optimized)
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .attachment(document.encode("utf-8"), f"cv_{name}.html",
                        "text/html; charset=utf-8", inline=True)
            .cache(CV_CACHE_SECONDS)
            .build())

    def _count_download(self) -> None:
        try:
            self.store.increment(DOWNLOADS_KEY, DOWNLOADS_WINDOW)
        except CacheError as e:
            logger.warning(f"Could not count CV download: {e}")

    def stats(self, request: HTTPRequest) -> HTTPResponse:
        try:
            counter = self.store.peek_counter(DOWNLOADS_KEY, DOWNLOADS_WINDOW)
        except CacheError as e:
            logger.warning(f"CV download counter unavailable: {e}")
            counter = None
        data = {
            "total_downloads": counter.count if counter else 0,
            "formats_available": list(FORMATS),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        return success(data, "CV statistics retrieved successfully")
