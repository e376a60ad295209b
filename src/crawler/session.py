"""Browser session lifecycle: process, isolated context and page.

A :class:`BrowserProcess` wraps one Chrome WebDriver. Each
:class:`BrowserContext` is a separate top-level window with its own
identity overrides and network blocking rules installed over the Chrome
DevTools protocol; its cookies are cleared when it closes. A
:class:`BrowserPage` drives that window.

:class:`SessionManager` hands out sessions and tears them down in order
(page, context, then the process only when the session owns it). Every
teardown step runs even if an earlier one fails, and releasing twice is a
no-op.
"""

from __future__ import annotations

import logging
import os
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from src import config

from . import NavigationError, SessionError

# Advanced anti-detection libraries
try:
    import undetected_chromedriver as uc

    UNDETECTED_CHROME_AVAILABLE = True
except ImportError:
    UNDETECTED_CHROME_AVAILABLE = False
    logging.warning("undetected-chromedriver not available, using standard Selenium")

try:
    from selenium_stealth import stealth

    SELENIUM_STEALTH_AVAILABLE = True
except ImportError:
    SELENIUM_STEALTH_AVAILABLE = False
    logging.warning("selenium-stealth not available, using basic stealth mode")

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Requests matching these are refused at the network layer.
BLOCKED_URL_PATTERNS = (
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.webp",
    "*.svg",
    "*.ico",
    "*.ttf",
    "*.woff",
    "*.woff2",
    "*.eot",
    "*.css",
    "*analytics.js*",
    "*gtm.js*",
    "*fbevents.js*",
    "*ga.js*",
    "*adsense.js*",
    "*adsbygoogle.js*",
    "*doubleclick.net*",
    "*facebook.net*",
    "*google-analytics.com*",
    "*googletagmanager.com*",
)

_LINK_SELECTOR = "a[href]:not([href^='javascript'])"


@dataclass(frozen=True)
class BrowserIdentity:
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.5"
    locale: str = "en-US"
    viewport_width: int = 1920
    viewport_height: int = 1080
    extra_headers: dict = field(
        default_factory=lambda: {
            "Accept": (
                "text/html,application/xhtml+xml,application/xml;q=0.9,"
                "image/webp,*/*;q=0.8"
            ),
            "Accept-Language": "en-US,en;q=0.5",
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
        }
    )


class BrowserProcess:
    """One running Chrome instance; may be shared across sources."""

    def __init__(self, driver, method: str = "selenium"):
        self.driver = driver
        self.method = method
        self.closed = False
        self.home_handle = driver.current_window_handle

    def quit(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.driver.quit()


class BrowserContext:
    """An isolated top-level window with identity and blocking rules."""

    def __init__(self, process: BrowserProcess, handle: str, identity: BrowserIdentity):
        self.process = process
        self.handle = handle
        self.identity = identity
        self.closed = False

    @property
    def driver(self):
        return self.process.driver

    def activate(self) -> None:
        if self.driver.current_window_handle != self.handle:
            self.driver.switch_to.window(self.handle)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.process.closed:
            return
        driver = self.driver
        try:
            self.activate()
            driver.execute_cdp_cmd("Network.clearBrowserCookies", {})
            driver.close()
        finally:
            driver.switch_to.window(self.process.home_handle)


class BrowserPage:
    """The single page of a context; all navigation goes through here."""

    def __init__(self, context: BrowserContext):
        if context.closed:
            raise SessionError("Cannot open a page on a closed context")
        self.context = context
        self.closed = False

    @property
    def driver(self):
        return self.context.driver

    @property
    def url(self) -> str:
        self.context.activate()
        return self.driver.current_url

    def goto(self, url: str, timeout: float | None = None) -> None:
        """Navigate to ``url``; raise :class:`NavigationError` on failure."""
        timeout = timeout or config.NAVIGATION_TIMEOUT_SECONDS
        self.context.activate()
        try:
            self.driver.set_page_load_timeout(timeout)
            self.driver.get(url)
        except TimeoutException as exc:
            raise NavigationError(url, f"timed out after {timeout}s") from exc
        except WebDriverException as exc:
            raise NavigationError(url, exc.msg or str(exc)) from exc

    def content(self) -> str:
        self.context.activate()
        return self.driver.page_source or ""

    def wait_for_selector(self, selector: str, timeout: float | None = None) -> bool:
        """Wait for ``selector`` to be present; False once ``timeout`` elapses."""
        if not selector:
            return False
        timeout = timeout or config.SELECTOR_TIMEOUT_SECONDS
        self.context.activate()
        try:
            WebDriverWait(self.driver, timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )
            return True
        except (TimeoutException, WebDriverException):
            return False

    def evaluate(self, script: str, *args):
        self.context.activate()
        return self.driver.execute_script(script, *args)

    def viewport_size(self) -> tuple[int, int]:
        size = self.evaluate("return [window.innerWidth, window.innerHeight];")
        if not size:
            return (
                self.context.identity.viewport_width,
                self.context.identity.viewport_height,
            )
        return int(size[0]), int(size[1])

    def scroll_by(self, delta_y: int) -> None:
        self.evaluate("window.scrollBy(0, arguments[0]);", delta_y)

    def mouse_move(self, x: int, y: int) -> None:
        self.evaluate(
            """
            var event = new MouseEvent('mousemove', {
                clientX: arguments[0],
                clientY: arguments[1],
                bubbles: true
            });
            document.dispatchEvent(event);
            """,
            x,
            y,
        )

    def click_random_link(self, rng: random.Random | None = None) -> bool:
        """Click one visible in-page link; False if none is clickable."""
        rng = rng or random
        self.context.activate()
        links = [
            link
            for link in self.driver.find_elements(By.CSS_SELECTOR, _LINK_SELECTOR)
            if link.is_displayed()
        ]
        if not links:
            return False
        rng.choice(links).click()
        return True

    def go_back(self) -> None:
        self.context.activate()
        self.driver.back()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.context.closed or self.context.process.closed:
            return
        self.context.activate()
        self.driver.get("about:blank")


@dataclass
class BrowserSession:
    process: BrowserProcess
    context: BrowserContext
    page: BrowserPage
    owns_process: bool = True
    released: bool = False


def _create_undetected_driver(headless: bool):
    """Create undetected-chromedriver instance with maximum stealth."""
    options = uc.ChromeOptions()
    options.page_load_strategy = "eager"
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--window-size=1920,1080")
    options.add_argument(f"--user-agent={DEFAULT_USER_AGENT}")
    options.add_argument("--lang=en-US")
    if headless:
        options.add_argument("--headless=new")

    kwargs = {"options": options}
    if config.CHROME_BIN:
        kwargs["browser_executable_path"] = config.CHROME_BIN
    if config.CHROMEDRIVER_PATH:
        kwargs["driver_executable_path"] = config.CHROMEDRIVER_PATH
    return uc.Chrome(**kwargs)


def _create_stealth_driver(headless: bool):
    """Create regular Selenium driver with stealth enhancements."""
    chrome_options = ChromeOptions()
    chrome_options.page_load_strategy = "eager"

    if headless:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--disable-blink-features=AutomationControlled")
    chrome_options.add_argument("--disable-extensions")
    chrome_options.add_argument("--lang=en-US")
    chrome_options.add_argument("--window-size=1920,1080")
    chrome_options.add_argument(f"--user-agent={DEFAULT_USER_AGENT}")

    chrome_options.add_experimental_option("excludeSwitches", ["enable-automation"])
    chrome_options.add_experimental_option("useAutomationExtension", False)
    chrome_options.add_experimental_option(
        "prefs",
        {
            "profile.default_content_setting_values": {
                "notifications": 2,
                "geolocation": 2,
                "media_stream": 2,
            },
        },
    )

    chrome_bin = config.CHROME_BIN or os.getenv("GOOGLE_CHROME_BIN") or None
    if chrome_bin:
        chrome_options.binary_location = str(chrome_bin)

    if config.CHROMEDRIVER_PATH:
        service = ChromeService(executable_path=str(config.CHROMEDRIVER_PATH))
        driver = webdriver.Chrome(service=service, options=chrome_options)
    else:
        driver = webdriver.Chrome(options=chrome_options)

    if SELENIUM_STEALTH_AVAILABLE:
        stealth(
            driver,
            languages=["en-US", "en"],
            vendor="Google Inc.",
            platform="Win32",
            webgl_vendor="Intel Inc.",
            renderer="Intel Iris OpenGL Engine",
            fix_hairline=True,
        )

    driver.execute_script(
        "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
    )
    return driver


def create_driver(headless: bool) -> tuple[object, str]:
    """Start Chrome, preferring undetected-chromedriver over plain Selenium."""
    if UNDETECTED_CHROME_AVAILABLE:
        try:
            return _create_undetected_driver(headless), "undetected-chromedriver"
        except Exception as uc_err:
            logger.warning(
                "undetected-chromedriver failed to initialize: %s; "
                "falling back to selenium-stealth",
                uc_err,
            )
    return _create_stealth_driver(headless), "selenium-stealth"


class SessionManager:
    """Acquire and release browser sessions.

    ``driver_factory`` receives the headless flag and returns either a
    WebDriver or a ``(driver, method)`` tuple; it defaults to
    :func:`create_driver`.
    """

    def __init__(
        self,
        headless: bool | None = None,
        driver_factory: Callable | None = None,
        identity: BrowserIdentity | None = None,
        blocked_url_patterns: tuple[str, ...] = BLOCKED_URL_PATTERNS,
    ):
        self.headless = config.HEADLESS if headless is None else headless
        self.driver_factory = driver_factory or create_driver
        self.identity = identity or BrowserIdentity()
        self.blocked_url_patterns = tuple(blocked_url_patterns)

    def launch_process(self) -> BrowserProcess:
        """Start a browser process the caller owns."""
        try:
            created = self.driver_factory(self.headless)
        except Exception as exc:
            raise SessionError(f"Failed to start browser: {exc}") from exc

        if isinstance(created, tuple):
            driver, method = created
        else:
            driver, method = created, "custom"
        logger.info("Started browser process using %s", method)
        return BrowserProcess(driver, method)

    def close_process(self, process: BrowserProcess | None) -> None:
        if process is None or process.closed:
            return
        try:
            process.quit()
            logger.info("Closed browser process")
        except Exception as exc:
            logger.warning("Error closing browser process: %s", exc)

    def _open_context(self, process: BrowserProcess) -> BrowserContext:
        driver = process.driver
        driver.switch_to.new_window("window")
        handle = driver.current_window_handle
        context = BrowserContext(process, handle, self.identity)

        try:
            identity = self.identity
            driver.execute_cdp_cmd("Network.enable", {})
            driver.execute_cdp_cmd(
                "Network.setBlockedURLs", {"urls": list(self.blocked_url_patterns)}
            )
            driver.execute_cdp_cmd(
                "Network.setUserAgentOverride",
                {
                    "userAgent": identity.user_agent,
                    "acceptLanguage": identity.accept_language,
                    "platform": "Win32",
                },
            )
            driver.execute_cdp_cmd(
                "Network.setExtraHTTPHeaders", {"headers": dict(identity.extra_headers)}
            )
            driver.execute_cdp_cmd(
                "Emulation.setDeviceMetricsOverride",
                {
                    "width": identity.viewport_width,
                    "height": identity.viewport_height,
                    "deviceScaleFactor": 1,
                    "mobile": False,
                },
            )
            driver.execute_cdp_cmd(
                "Emulation.setLocaleOverride", {"locale": identity.locale}
            )
        except Exception:
            try:
                context.close()
            except Exception as close_exc:
                logger.warning("Error closing half-open context: %s", close_exc)
            raise
        return context

    def acquire(self, shared: BrowserSession | BrowserProcess | None = None) -> BrowserSession:
        """Open a fresh context and page, on ``shared``'s process if given."""
        if isinstance(shared, BrowserSession):
            process, owns_process = shared.process, False
        elif isinstance(shared, BrowserProcess):
            process, owns_process = shared, False
        else:
            process, owns_process = self.launch_process(), True

        if process.closed:
            raise SessionError("Cannot acquire a session on a closed browser process")

        try:
            context = self._open_context(process)
            page = BrowserPage(context)
        except Exception as exc:
            if owns_process:
                self.close_process(process)
            raise SessionError(f"Failed to open browser context: {exc}") from exc

        return BrowserSession(process, context, page, owns_process=owns_process)

    def release(self, session: BrowserSession | None) -> None:
        """Close page, context and (if owned) process; safe to call twice."""
        if session is None or session.released:
            return
        session.released = True

        try:
            session.page.close()
        except Exception as exc:
            logger.warning("Error closing page: %s", exc)

        try:
            session.context.close()
        except Exception as exc:
            logger.warning("Error closing browser context: %s", exc)

        if session.owns_process:
            self.close_process(session.process)

    @contextmanager
    def session(
        self, shared: BrowserSession | BrowserProcess | None = None
    ) -> Iterator[BrowserSession]:
        browser_session = self.acquire(shared)
        try:
            yield browser_session
        finally:
            self.release(browser_session)
