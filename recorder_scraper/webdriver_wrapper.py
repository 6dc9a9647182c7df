import os
import shutil
import tempfile
import time
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSelectorException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .config import Settings
from .engine import (
    AutomationEngine,
    Download,
    DownloadWatch,
    ElementHandle,
    PageHandle,
    PageWatch,
    SessionHandle,
)
from .errors import ConfigError, SequenceTimeout
from .models import StructuralLocator

logger = logging.getLogger("recorder_scraper")

LOCATOR_BYS = {
    "id": By.ID,
    "css": By.CSS_SELECTOR,
    "xpath": By.XPATH,
    "link_text": By.LINK_TEXT,
}

# Chrome writes in-progress downloads under these suffixes and renames on completion
PARTIAL_SUFFIXES = (".crdownload", ".part", ".tmp")

_KEY_ALIASES = {
    "control": Keys.CONTROL,
    "ctrl": Keys.CONTROL,
    "meta": Keys.COMMAND,
    "command": Keys.COMMAND,
    "shift": Keys.SHIFT,
    "alt": Keys.ALT,
    "esc": Keys.ESCAPE,
}

_INDEX_ATTRIBUTE = "data-recorder-index"

_SNAPSHOT_SCRIPT = """
const limit = arguments[0];
const attr = arguments[1];
document.querySelectorAll('[' + attr + ']').forEach(el => el.removeAttribute(attr));
const selector = 'a, button, input, select, textarea, td, [role="button"], [role="link"], [onclick]';
const found = [];
for (const el of document.querySelectorAll(selector)) {
    if (found.length >= limit) break;
    const rect = el.getBoundingClientRect();
    if (rect.width === 0 || rect.height === 0) continue;
    const index = found.length;
    el.setAttribute(attr, String(index));
    found.push({
        index: String(index),
        tag: el.tagName.toLowerCase(),
        id: el.id || '',
        name: el.getAttribute('name') || '',
        type: el.getAttribute('type') || '',
        label: el.getAttribute('aria-label') || el.getAttribute('title') || '',
        placeholder: el.getAttribute('placeholder') || '',
        text: (el.innerText || el.value || '').trim().slice(0, 80),
    });
}
return found;
"""


def _resolve_key(name: str) -> str:
    if len(name) == 1:
        return name
    alias = _KEY_ALIASES.get(name.lower())
    if alias is not None:
        return alias
    key = getattr(Keys, name.upper(), None)
    if key is None:
        raise ConfigError(f"Unknown key name: {name}")
    return key


def parse_key_combo(combo: str) -> Tuple[List[str], str]:
    """
    Split a combo such as ``Control+a`` into Selenium modifier keys and the final key

    Args:
        combo: Key names joined with '+', the last one being the key pressed

    Returns:
        Tuple of (modifier keys, key)
    """
    parts = [part.strip() for part in combo.split("+") if part.strip()]
    if not parts:
        raise ConfigError(f"Empty key combination: {combo!r}")
    return [_resolve_key(p) for p in parts[:-1]], _resolve_key(parts[-1])


class WebDriverWrapper:
    """Wrapper for Selenium WebDriver to simplify common browser operations"""

    def __init__(self, driver: WebDriver, poll_frequency: float = 0.25):
        """
        Initialize the WebDriver wrapper

        Args:
            driver: Selenium WebDriver instance
            poll_frequency: Seconds between checks while waiting on a condition
        """
        self.driver = driver
        self.poll_frequency = poll_frequency

    def find_element(self, locator: StructuralLocator, timeout: float) -> Optional[WebElement]:
        """
        Find a visible element, waiting at most ``timeout`` seconds

        Args:
            locator: Structural locator of the element
            timeout: Bounded visibility wait; 0 checks once

        Returns:
            The visible WebElement, or None if it did not become visible in time
        """
        by = LOCATOR_BYS[locator.by]
        try:
            if timeout <= 0:
                for element in self.driver.find_elements(by, locator.value):
                    try:
                        if element.is_displayed():
                            return element
                    except StaleElementReferenceException:
                        continue
                return None
            return WebDriverWait(self.driver, timeout, poll_frequency=self.poll_frequency).until(
                EC.visibility_of_element_located((by, locator.value))
            )
        except (TimeoutException, StaleElementReferenceException):
            return None
        except InvalidSelectorException as e:
            logger.warning(f"Invalid selector {locator}: {e.msg}")
            return None

    def press_keys(self, keys: Sequence[str]) -> None:
        """Send key combinations to whatever currently has focus"""
        for combo in keys:
            modifiers, key = parse_key_combo(combo)
            chain = ActionChains(self.driver)
            for modifier in modifiers:
                chain.key_down(modifier)
            chain.send_keys(key)
            for modifier in reversed(modifiers):
                chain.key_up(modifier)
            chain.perform()


class SeleniumElement(ElementHandle):
    def __init__(self, element: WebElement):
        self.element = element

    def click(self) -> None:
        self.element.click()

    def fill(self, text: str) -> None:
        self.element.click()
        # Select-all then type, so date widgets see key events instead of a cleared value
        self.element.send_keys(Keys.CONTROL + "a")
        time.sleep(0.2)
        self.element.send_keys(text)

    def press(self, keys: Sequence[str]) -> None:
        for combo in keys:
            modifiers, key = parse_key_combo(combo)
            self.element.send_keys("".join(modifiers) + key)


class FileDownload(Download):
    def __init__(self, path: str):
        self.path = path

    @property
    def suggested_filename(self) -> Optional[str]:
        return os.path.basename(self.path)

    def open(self):
        return open(self.path, "rb")


class DirectoryDownloadWatch(DownloadWatch):
    """Treats a new, fully written file in the session download directory as a download"""

    def __init__(self, directory: str, poll_interval: float = 0.5):
        self.directory = directory
        self.poll_interval = poll_interval
        self._seen: Set[str] = set(os.listdir(directory))

    def _completed_files(self) -> List[str]:
        names = []
        for name in sorted(set(os.listdir(self.directory)) - self._seen):
            if name.endswith(PARTIAL_SUFFIXES) or name.startswith("."):
                continue
            names.append(name)
        return names

    def wait(self, timeout: float) -> Optional[Download]:
        deadline = time.monotonic() + timeout
        while True:
            completed = self._completed_files()
            if completed:
                path = os.path.join(self.directory, completed[0])
                logger.info(f"Download completed: {path}")
                return FileDownload(path)
            if time.monotonic() >= deadline:
                return None
            time.sleep(self.poll_interval)


class SeleniumPage(PageHandle):
    """A browser window addressed by its window handle"""

    def __init__(self, session: "SeleniumSession", handle: str):
        self.session = session
        self.handle = handle
        self.name = f"window:{handle}"
        self.browser = WebDriverWrapper(session.driver)

    @property
    def driver(self) -> WebDriver:
        return self.session.driver

    def _activate(self) -> None:
        if self.driver.current_window_handle != self.handle:
            self.driver.switch_to.window(self.handle)

    def navigate(self, url: str, timeout: float) -> None:
        self._activate()
        self.driver.set_page_load_timeout(timeout)
        logger.info(f"Navigating to {url}")
        try:
            self.driver.get(url)
        except TimeoutException:
            raise SequenceTimeout(f"navigation to {url} timed out after {timeout}s")
        logger.info(f"Currently at: {self.driver.current_url}")

    def find(self, locator: StructuralLocator, timeout: float) -> Optional[ElementHandle]:
        self._activate()
        element = self.browser.find_element(locator, timeout)
        return SeleniumElement(element) if element is not None else None

    def press(self, keys: Sequence[str]) -> None:
        self._activate()
        self.browser.press_keys(keys)

    def wait_for_load(self, timeout: float) -> None:
        self._activate()
        try:
            WebDriverWait(self.driver, timeout).until(
                lambda driver: driver.execute_script("return document.readyState") == "complete"
            )
        except TimeoutException:
            logger.warning(f"{self.name} still loading after {timeout}s, continuing")

    def expect_download(self) -> DownloadWatch:
        # Chrome routes downloads from every window into the session directory
        return DirectoryDownloadWatch(self.session.download_dir, self.session.poll_interval)

    def interactive_elements(self, limit: int) -> List[Dict[str, str]]:
        self._activate()
        return self.driver.execute_script(_SNAPSHOT_SCRIPT, limit, _INDEX_ATTRIBUTE) or []

    def element_at(self, index: int) -> Optional[ElementHandle]:
        self._activate()
        elements = self.driver.find_elements(By.CSS_SELECTOR, f'[{_INDEX_ATTRIBUTE}="{index}"]')
        return SeleniumElement(elements[0]) if elements else None


class NewWindowWatch(PageWatch):
    """Snapshots the open window handles on creation and reports the first new one"""

    def __init__(self, session: "SeleniumSession"):
        self.session = session
        self._known = set(session.driver.window_handles)

    def wait(self, timeout: float) -> Optional[PageHandle]:
        deadline = time.monotonic() + timeout
        while True:
            try:
                new_handles = [h for h in self.session.driver.window_handles if h not in self._known]
            except NoSuchWindowException:
                new_handles = []
            if new_handles:
                logger.info(f"New window opened: {new_handles[0]}")
                return self.session.page(new_handles[0])
            if time.monotonic() >= deadline:
                return None
            time.sleep(self.session.poll_interval)


class SeleniumSession(SessionHandle):
    def __init__(self, driver: WebDriver, download_dir: str, poll_interval: float = 0.5):
        self.driver = driver
        self.download_dir = download_dir
        self.poll_interval = poll_interval
        self._main_handle = driver.current_window_handle
        self._pages: Dict[str, SeleniumPage] = {}

    def page(self, handle: str) -> SeleniumPage:
        if handle not in self._pages:
            self._pages[handle] = SeleniumPage(self, handle)
        return self._pages[handle]

    @property
    def main_page(self) -> PageHandle:
        return self.page(self._main_handle)

    def list_pages(self) -> List[PageHandle]:
        return [self.page(handle) for handle in self.driver.window_handles]

    def expect_new_page(self) -> PageWatch:
        return NewWindowWatch(self)

    def close(self) -> None:
        """Quit the browser and remove the session download directory"""
        try:
            self.driver.quit()
            logger.info("Browser closed")
        finally:
            shutil.rmtree(self.download_dir, ignore_errors=True)


class SeleniumEngine(AutomationEngine):
    """Opens one Chrome session per scrape run"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _setup_driver(self, download_dir: str) -> WebDriver:
        """
        Set up and configure the Selenium WebDriver

        Args:
            download_dir: Directory Chrome saves downloads into

        Returns:
            Configured WebDriver instance
        """
        chrome_options = Options()
        if self.settings.headless:
            chrome_options.add_argument("--headless=new")

        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--window-size=1920,1080")

        prefs = {
            "download.default_directory": download_dir,
            "download.prompt_for_download": False,
            "download.directory_upgrade": True,
            # Save PDFs instead of rendering them in the built-in viewer
            "plugins.always_open_pdf_externally": True,
        }
        chrome_options.add_experimental_option("prefs", prefs)

        return webdriver.Chrome(options=chrome_options)

    def open_session(self) -> SessionHandle:
        base_dir = self.settings.download_dir
        if base_dir:
            os.makedirs(base_dir, exist_ok=True)
        download_dir = tempfile.mkdtemp(prefix="recorder-", dir=base_dir)
        try:
            driver = self._setup_driver(download_dir)
        except Exception:
            shutil.rmtree(download_dir, ignore_errors=True)
            raise
        logger.info(f"Browser session started, downloads in {download_dir}")
        return SeleniumSession(driver, download_dir, self.settings.poll_interval)
