from .playwright_page_host import PlaywrightPageHost
from .playwright_session import PlaywrightBrowserSession
from .playwright_tab_host import PlaywrightTabHost

__all__ = [
    "PlaywrightBrowserSession",
    "PlaywrightPageHost",
    "PlaywrightTabHost",
]
