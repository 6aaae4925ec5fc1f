"""
Accept Engine - filters, dedupes, rate-limits and submits accept requests.

Safety rules:
- Only entries with an accept control and without a cancel control are
  ever candidates. The cancel control is never submitted.
- Every key is attempted at most once per watcher session, even when
  the attempt fails.
- At most max_per_tick submissions per tick, issued one at a time.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from api.logging_config import log_accept
from browser.page_engine import PageEngine
from core.error_handler import SubmitError
from core.models import JobEntry, ListingSnapshot, SeenKeySet, TickResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Submission:
    """A fully resolved accept request."""
    key: str
    method: str
    url: str
    fields: Tuple[Tuple[str, str], ...]


def build_submission(entry: JobEntry, page_url: str) -> Optional[Submission]:
    """
    Build the accept request for an entry.

    Returns None when the entry has no accept control; there is no generic
    submit fallback.
    """
    form = entry.form
    if form is None or form.accept_control is None:
        return None

    fields = list(form.fields)
    control = form.accept_control
    if control.name:
        fields = [(name, value) for name, value in fields if name != control.name]
        fields.append((control.name, control.value or "1"))

    url = urljoin(page_url, form.action) if form.action else page_url
    return Submission(
        key=entry.key,
        method=(form.method or "POST").upper(),
        url=url,
        fields=tuple(fields),
    )


def select_batch(entries: List[JobEntry], seen: SeenKeySet, max_per_tick: int) -> List[JobEntry]:
    """
    Unseen entries in snapshot order, earliest first, capped at max_per_tick.

    Entries sharing a key (same date and location, no id) count once; only
    the first is kept.
    """
    batch: List[JobEntry] = []
    keys = set()
    for entry in entries:
        if len(batch) >= max_per_tick:
            break
        if entry.key in seen or entry.key in keys:
            continue
        keys.add(entry.key)
        batch.append(entry)
    return batch


class AcceptEngine:
    """
    Runs one accept pass over a listing snapshot.

    Example:
        engine = AcceptEngine(page_engine)
        result = await engine.run_tick(snapshot, seen, max_per_tick=3)
    """

    def __init__(self, page: PageEngine):
        self.page = page

    async def run_tick(self, snapshot: ListingSnapshot, seen: SeenKeySet, max_per_tick: int) -> TickResult:
        if snapshot.need_login:
            return TickResult.login_required()

        candidates = snapshot.actionable()
        batch = select_batch(candidates, seen, max_per_tick)

        accepted = tried = errors = 0
        last_accept_key = None

        # Strictly sequential: parallel submits on one form risk double accepts
        for entry in batch:
            if entry.key in seen:
                continue
            tried += 1
            try:
                await self._submit(entry)
                accepted += 1
                last_accept_key = entry.key
                log_accept(entry.key, accepted=True)
            except SubmitError as e:
                errors += 1
                log_accept(entry.key, accepted=False, reason=e.reason)
            finally:
                seen.add(entry.key)

        # Skipped candidates beyond the batch are treated as evaluated too
        skipped = list(dict.fromkeys(entry.key for entry in candidates if entry.key not in seen))
        if skipped:
            logger.debug(f"Per-tick limit reached, marking {len(skipped)} more as seen: {skipped}")
        seen.add_all(skipped)

        return TickResult(
            accepted=accepted,
            tried=tried,
            errors=errors,
            last_accept_key=last_accept_key,
        )

    async def _submit(self, entry: JobEntry) -> None:
        submission = build_submission(entry, self.page.current_url())
        if submission is None:
            raise SubmitError(entry.key, "no accept control")

        try:
            if submission.method == "GET":
                response = await self.page.request("GET", submission.url, params=submission.fields)
            else:
                response = await self.page.request(submission.method, submission.url, form=submission.fields)
        except Exception as e:
            raise SubmitError(entry.key, str(e)) from e

        if not response.ok:
            raise SubmitError(entry.key, f"HTTP {response.status}", status=response.status)
