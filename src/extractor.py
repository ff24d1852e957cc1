"""Per-item valuation extraction.

One work item = one (player, grade) pair = one page. For each item the
pipeline:

1. opens a fresh page in the shared context (pages are never reused),
2. installs the resource filter,
3. navigates to the templated data center URL, waiting only for
   DOMContentLoaded,
4. polls until the price element exists and carries a non-empty readiness
   attribute (bounded by `readiness_timeout_ms`),
5. reads the element text,
6. returns a ValuationRecord.

Failures are classified and returned as error records; the pipeline never
raises for a single item. The page is closed on every exit path.
"""

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import GlobalConfig, get_config
from src.browser import SessionManager
from src.exceptions import ExtractionError, NavigationError, ReadinessTimeoutError
from src.logger import get_logger
from src.models import Outcome, ValuationRecord, WorkItem
from src.resource_filter import ResourceFilter

log = get_logger(__name__)

# Polled in the page: true once the element exists with a non-blank attribute.
READINESS_PREDICATE = """
([selector, attribute]) => {
    const element = document.querySelector(selector);
    if (!element) {
        return false;
    }
    const value = element.getAttribute(attribute);
    return value !== null && value.trim() !== "";
}
"""


def build_target_url(template: str, entity_id: int, grade: int) -> str:
    """Fill the data center URL template for one (player, grade) pair."""
    return template.format(entity_id=entity_id, grade=grade)


class ExtractionPipeline:
    """Turns a WorkItem into a ValuationRecord using the shared session.

    Attributes:
        session: Acquired SessionManager supplying pages.
        config: GlobalConfig with target URL, selectors and timeouts.
        resource_filter: Interception rule attached to every page.
    """

    def __init__(
        self,
        session: SessionManager,
        config: GlobalConfig | None = None,
        resource_filter: ResourceFilter | None = None,
    ) -> None:
        self.session = session
        self.config = config or get_config()
        self.resource_filter = resource_filter or ResourceFilter.from_config(self.config)

    def url_for(self, item: WorkItem) -> str:
        return build_target_url(self.config.target_url_template, item.entity_id, item.grade)

    async def extract(self, item: WorkItem) -> ValuationRecord:
        """Run the full per-item sequence and classify the outcome.

        Returns:
            A success record with the price text, or an error record whose
            outcome is TIMEOUT, NAVIGATION_ERROR or EXTRACTION_ERROR.
        """
        url = self.url_for(item)
        page: Page | None = None

        try:
            page = await self.session.new_page()
            await self.resource_filter.install(page)
            await self.session.navigate(page, url)
            await self._wait_until_ready(page, url)
            value = await self._read_value(page, url)

        except ReadinessTimeoutError as exc:
            log.warning(
                "Readiness timeout",
                entity_id=item.entity_id,
                grade=item.grade,
                timeout_ms=exc.timeout_ms,
            )
            return ValuationRecord.failure(item, Outcome.TIMEOUT, exc.message)

        except NavigationError as exc:
            log.warning(
                "Navigation failed",
                entity_id=item.entity_id,
                grade=item.grade,
                status_code=exc.status_code,
                error=exc.message,
            )
            return ValuationRecord.failure(item, Outcome.NAVIGATION_ERROR, exc.message)

        except Exception as exc:
            reason = exc.message if isinstance(exc, ExtractionError) else str(exc)
            log.warning(
                "Extraction failed",
                entity_id=item.entity_id,
                grade=item.grade,
                error_type=type(exc).__name__,
                error=reason,
            )
            return ValuationRecord.failure(item, Outcome.EXTRACTION_ERROR, reason)

        finally:
            if page is not None:
                await self._close_page(page)

        log.info("Valuation extracted", entity_id=item.entity_id, grade=item.grade, value=value)
        return ValuationRecord.success(item, value)

    async def _wait_until_ready(self, page: Page, url: str) -> None:
        """Poll the readiness predicate until it holds or the bound expires.

        Raises:
            ReadinessTimeoutError: If the predicate never held in time.
        """
        timeout_ms = self.config.readiness_timeout_ms
        try:
            await page.wait_for_function(
                READINESS_PREDICATE,
                arg=[self.config.value_selector, self.config.readiness_attribute],
                timeout=timeout_ms,
            )
        except (PlaywrightTimeoutError, TimeoutError) as exc:
            raise ReadinessTimeoutError(
                url=url, selector=self.config.value_selector, timeout_ms=timeout_ms
            ) from exc

    async def _read_value(self, page: Page, url: str) -> str:
        """Read the price text of the ready element.

        Raises:
            ExtractionError: If the element has no text.
        """
        selector = self.config.value_selector
        text = await page.locator(selector).first.text_content()
        value = (text or "").strip()
        if not value:
            raise ExtractionError(selector=selector, url=url, reason="Element text is empty")
        return value

    async def _close_page(self, page: Page) -> None:
        try:
            await page.close()
        except Exception as exc:
            log.warning("Error closing page", error=str(exc))
