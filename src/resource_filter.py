"""Request interception policy for valuation pages.

The data center page only needs its HTML document and scripts to render
the price element. Everything else (images, fonts, styles, analytics beacons)
is aborted before it reaches the network.

The decision is a pure function of (resource type, url) so the policy can be
tested without a browser; `ResourceFilter.install()` is the thin Playwright
adapter around it.
"""

from collections.abc import Iterable
from enum import Enum
from urllib.parse import urlsplit

from playwright.async_api import Page, Route

from config.settings import GlobalConfig, get_config
from src.logger import get_logger

log = get_logger(__name__)


class RouteDecision(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"


def host_matches(url: str, domains: Iterable[str]) -> bool:
    """Check whether the url's host is one of `domains` or a subdomain of one."""
    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return False
    for domain in domains:
        domain = domain.lower().lstrip(".")
        if host == domain or host.endswith(f".{domain}"):
            return True
    return False


def should_block(
    resource_type: str,
    url: str,
    blocked_types: Iterable[str],
    blocked_domains: Iterable[str],
) -> bool:
    """Return True when a request must be aborted."""
    if resource_type in set(blocked_types):
        return True
    return host_matches(url, blocked_domains)


class ResourceFilter:
    """Per-page interception rule built from configuration.

    Example:
        resource_filter = ResourceFilter.from_config(config)
        await resource_filter.install(page)
        await page.goto(url)
    """

    def __init__(
        self,
        blocked_types: Iterable[str],
        blocked_domains: Iterable[str],
    ) -> None:
        self.blocked_types = frozenset(blocked_types)
        self.blocked_domains = tuple(blocked_domains)

    @classmethod
    def from_config(cls, config: GlobalConfig | None = None) -> "ResourceFilter":
        config = config or get_config()
        return cls(config.blocked_resource_types, config.blocked_domains)

    def decide(self, resource_type: str, url: str) -> RouteDecision:
        if should_block(resource_type, url, self.blocked_types, self.blocked_domains):
            return RouteDecision.BLOCK
        return RouteDecision.ALLOW

    async def handle(self, route: Route) -> None:
        """Playwright route handler: abort or continue unmodified."""
        request = route.request
        if self.decide(request.resource_type, request.url) is RouteDecision.BLOCK:
            await route.abort()
        else:
            await route.continue_()

    async def install(self, page: Page) -> None:
        """Attach the rule to a page. Must run before the first navigation."""
        await page.route("**/*", self.handle)
        log.debug(
            "Resource filter installed",
            blocked_types=len(self.blocked_types),
            blocked_domains=len(self.blocked_domains),
        )
