"""Check that opportunity links point at a real page."""
from __future__ import annotations

import logging
import re
from typing import Optional

import requests
from bs4 import BeautifulSoup

from funding_finder.constants import HEADERS, LINK_CHECK_TIMEOUT
from funding_finder.normalize import LinkCheck

logger = logging.getLogger(__name__)

# the page is certainly gone
DEAD_STATUSES = {404, 410}


def extract_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    title = re.sub(r"\s+", " ", soup.title.get_text(" ", strip=True)).strip()
    return title or None


def check_link(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = LINK_CHECK_TIMEOUT,
) -> LinkCheck:
    """
    ``reachable`` is ``False`` for 404/410 and hosts that cannot be reached,
    ``None`` when the site refuses to answer us (401/403/429/5xx, timeouts),
    ``True`` otherwise.
    """
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
    except requests.exceptions.Timeout as e:
        logger.info("Link check timed out for %s: %s", url, e)
        return LinkCheck(reachable=None)
    except requests.exceptions.ConnectionError as e:
        logger.info("Link unreachable %s: %s", url, e)
        return LinkCheck(reachable=False)
    except requests.exceptions.RequestException as e:
        logger.warning("Link check failed for %s: %s", url, e)
        return LinkCheck(reachable=None)

    if resp.status_code in DEAD_STATUSES:
        return LinkCheck(reachable=False)
    if resp.status_code >= 400:
        logger.debug("Link %s answered %s; keeping as unverified", url, resp.status_code)
        return LinkCheck(reachable=None)

    page_title = None
    if "html" in (resp.headers.get("Content-Type") or "").lower():
        page_title = extract_title(resp.text)
    return LinkCheck(reachable=True, page_title=page_title)
