"""
Fakes and page fixtures shared by the test modules.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

WEBSITE_HTML = """
<html>
  <head>
    <title>Acme Analytics</title>
    <meta name="description" content="Acme builds analytics software">
    <meta property="og:title" content="Acme on the web">
    <script type="application/ld+json">{"@type": "Organization", "name": "Acme"}</script>
    <style>body { color: red; }</style>
  </head>
  <body>
    <h1>Welcome to Acme</h1>
    <p>Acme builds analytics software for modern revenue teams, with dashboards,
    alerts and forecasting that help every team member make better decisions.</p>
    <script>var tracking = "should not be visible";</script>
  </body>
</html>
"""

PRICING_HTML = """
<html>
  <head><title>Acme Pricing</title></head>
  <body>
    <div class="pricing-card">
      <h3>Starter</h3>
      <div class="price">$19/month</div>
      <ul><li>5 projects</li><li>Email support</li></ul>
    </div>
    <div class="pricing-card popular">
      <h3>Pro</h3>
      <div class="price">$49/month</div>
      <ul><li>Unlimited projects</li></ul>
    </div>
    <div class="pricing-card">
      <h3>Enterprise</h3>
      <div class="price">$1,200/year</div>
    </div>
  </body>
</html>
"""

PRODUCTS_HTML = """
<html>
  <body>
    <div class="product-card" data-category="Analytics">
      <h3>Insight Engine</h3>
      <p>Real-time dashboards for revenue teams.</p>
      <ul><li>Dashboards</li><li>Alerts</li></ul>
    </div>
    <div class="product-card">
      <h3>Pipeline Studio</h3>
      <p>Visual data pipelines, now in beta.</p>
    </div>
    <div class="product-card">
      <h3>Legacy Reports</h3>
      <p>Deprecated reporting module.</p>
    </div>
  </body>
</html>
"""

JOBS_HTML = """
<html>
  <body>
    <div class="job-posting">
      <h3>Senior Backend Engineer</h3>
      <span class="location">Remote - US</span>
      <span class="department">Engineering</span>
      <p class="description">Build and operate our ingestion APIs.</p>
      <a href="/careers/123">Apply</a>
    </div>
    <div class="job-posting">
      <h3>CTO</h3>
      <span class="location">New York</span>
      <span class="department">Executive</span>
      <p class="description">Own the technical strategy.</p>
    </div>
    <div class="job-posting">
      <h3>Marketing Intern</h3>
      <span class="location">London</span>
      <span class="department">Marketing</span>
      <p class="description">Support campaign launches.</p>
    </div>
  </body>
</html>
"""

EMPTY_HTML = "<html><head><title>Nothing here</title></head><body><p>Coming soon.</p></body></html>"


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        *,
        url: str | None = None,
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self.text = text
        self.url = url
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """
    Stand-in for requests.Session with per-URL canned responses.

    A route maps a URL to a response, an exception, or a list of those served
    in order (the last one repeats). Unknown URLs answer 404.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.head_routes: dict[str, Any] = {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("GET", url))
        return self._serve(self.routes, url)

    def head(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("HEAD", url))
        return self._serve(self.head_routes, url)

    def close(self) -> None:
        self.closed = True

    def get_count(self, url: str) -> int:
        return sum(1 for method, called in self.calls if method == "GET" and called == url)

    @staticmethod
    def _serve(routes: dict[str, Any], url: str) -> FakeResponse:
        outcome = routes.get(url)
        if outcome is None:
            return FakeResponse(404, "", url=url, reason="Not Found")
        if isinstance(outcome, Sequence) and not isinstance(outcome, (str, bytes)):
            item = outcome[0]
            if len(outcome) > 1:
                routes[url] = list(outcome[1:])
            outcome = item
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return FakeResponse(200, outcome, url=url)
        return outcome


class FakeClock:
    """
    Settable UTC clock for the scheduler.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """
    Monotonic clock whose sleep advances time instead of blocking.
    """

    def __init__(self) -> None:
        self.value = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.value

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.value += seconds
