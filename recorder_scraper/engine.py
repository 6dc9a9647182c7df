"""
Browser automation capability the workflow engine relies on.

The engine only talks to these interfaces; ``webdriver_wrapper`` provides the
Selenium implementation and the tests provide scripted fakes.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, List, Optional, Sequence

from .models import StructuralLocator


class ElementHandle(ABC):
    """A resolved UI element on a page"""

    @abstractmethod
    def click(self) -> None:
        ...

    @abstractmethod
    def fill(self, text: str) -> None:
        """Replace the element's current value with ``text``"""
        ...

    @abstractmethod
    def press(self, keys: Sequence[str]) -> None:
        ...


class Download(ABC):
    """A completed file download"""

    @property
    @abstractmethod
    def suggested_filename(self) -> Optional[str]:
        ...

    @abstractmethod
    def open(self) -> BinaryIO:
        """Open a readable byte stream over the downloaded content"""
        ...


class DownloadWatch(ABC):
    """Download listener, registered when it is created"""

    @abstractmethod
    def wait(self, timeout: float) -> Optional[Download]:
        """Return the first download seen since registration, or None after ``timeout``"""
        ...


class PageWatch(ABC):
    """New-page listener, registered when it is created"""

    @abstractmethod
    def wait(self, timeout: float) -> Optional["PageHandle"]:
        """Return the first page opened since registration, or None after ``timeout``"""
        ...


class PageHandle(ABC):
    """One browser page: the main tab or a popup"""

    name: str = "page"

    @abstractmethod
    def navigate(self, url: str, timeout: float) -> None:
        """
        Load ``url`` in this page

        Raises:
            SequenceTimeout: If the page does not load within ``timeout``
        """
        ...

    @abstractmethod
    def find(self, locator: StructuralLocator, timeout: float) -> Optional[ElementHandle]:
        """Return the element once visible, or None when the bounded check elapses"""
        ...

    @abstractmethod
    def press(self, keys: Sequence[str]) -> None:
        """Send a key combination to the page itself"""
        ...

    @abstractmethod
    def wait_for_load(self, timeout: float) -> None:
        ...

    @abstractmethod
    def expect_download(self) -> DownloadWatch:
        ...

    @abstractmethod
    def interactive_elements(self, limit: int) -> List[Dict[str, str]]:
        """Describe up to ``limit`` visible interactive elements, each with an ``index`` key"""
        ...

    @abstractmethod
    def element_at(self, index: int) -> Optional[ElementHandle]:
        """Return the element listed under ``index`` by the last ``interactive_elements`` call"""
        ...


class SessionHandle(ABC):
    """One browser session owning the main page and any popups"""

    @property
    @abstractmethod
    def main_page(self) -> PageHandle:
        ...

    @abstractmethod
    def list_pages(self) -> List[PageHandle]:
        ...

    @abstractmethod
    def expect_new_page(self) -> PageWatch:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class AutomationEngine(ABC):
    @abstractmethod
    def open_session(self) -> SessionHandle:
        ...
