"""
Page object model for the Base Page.
Encapsulates the interactions shared by every page we drive.
"""

from playwright.sync_api import Page, Locator
from typing import Callable, Union
import logging

logger = logging.getLogger(__name__)

# Cheap fingerprint of the rendered page: element count plus visible text length
DOM_SIGNATURE_SCRIPT = """() => {
    if (!document.body) { return ""; }
    return document.getElementsByTagName("*").length + ":" + document.body.innerText.length;
}"""


class BasePage:
    """Represents the Base page"""

    def __init__(self, page: Page) -> None:
        self.page = page

    def is_element_visible(
            self,
            locator_or_getter: Union[Locator, Callable[[], Locator]],
            timeout: int = 5000
        ) -> bool:
        """
        Check if an element is visible on the page (Non-blocking check).

        Args:
            locator_or_getter: either a Locator or a callable that returns a Locator
            timeout: Maximum time to wait in milliseconds

        Returns:
            True if element is visible, False otherwise
        """
        try:
            self.wait_for_element(locator_or_getter, state='visible', timeout=timeout)
            return True
        except Exception:
            return False

    def wait_for_element(
        self,
        locator_or_getter: Union[Locator, Callable[[], Locator]],
        state: str = "visible",
        timeout: int = 10000
    ) -> Locator:
        """
        Wait for an element to reach a specific state.

        Args:
            locator_or_getter: Either a Locator or a callable (e.g., property) that returns a Locator
            state: The state to wait for - "visible", "attached", "detached", "hidden" (default: "visible")
            timeout: Maximum time to wait in milliseconds (default: 10000)

        Returns:
            The Locator that was waited for (useful for chaining)

        Raises:
            TimeoutError: If element doesn't reach the state within timeout
        """
        if callable(locator_or_getter):
            locator = locator_or_getter()
        else:
            locator = locator_or_getter

        locator.wait_for(state=state, timeout=timeout)
        return locator

    def dom_signature(self) -> str:
        """Fingerprint of the current DOM, empty while there is no body."""
        return str(self.page.evaluate(DOM_SIGNATURE_SCRIPT))

    def is_dom_stable(self, sample_ms: int = 300) -> bool:
        """
        Check that the DOM does not change across one sampling window.

        Args:
            sample_ms: Length of the sampling window in milliseconds

        Returns:
            True if the fingerprint is non-empty and identical before and after the window
        """
        before = self.dom_signature()
        self.page.wait_for_timeout(sample_ms)
        after = self.dom_signature()
        return bool(before) and before == after

    def pause(self, seconds: float) -> None:
        """Sleep through Playwright so pending page events are still dispatched."""
        self.page.wait_for_timeout(seconds * 1000)
